from .file import FileMeta, FileMetaCreate, FileUploadResult
from .share import ShareLink, ShareLinkCreate, ShareLinkRecord, ShareLinkIssued, LinkStatusInfo, DownloadLog

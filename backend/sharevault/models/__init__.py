from .file import FileMeta
from .share import ShareLink
from .download_log import DownloadLog

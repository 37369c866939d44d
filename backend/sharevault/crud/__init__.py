from .crud_file import file
from .crud_share import share_link
from .crud_download_log import download_log

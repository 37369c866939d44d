# Import all the models, so that Base has them before being
# imported by create_all
from sharevault.db.base_class import Base  # noqa
from sharevault.models.file import FileMeta  # noqa
from sharevault.models.share import ShareLink  # noqa
from sharevault.models.download_log import DownloadLog  # noqa

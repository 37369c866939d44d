from sharevault.crud.base import CRUDBase
from sharevault.models.file import FileMeta
from sharevault.schemas.file import FileMetaCreate


class CRUDFileMeta(CRUDBase[FileMeta, FileMetaCreate]):
    pass


file = CRUDFileMeta(FileMeta)

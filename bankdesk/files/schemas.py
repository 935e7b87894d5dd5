from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

class StoredFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    filename: str
    original_name: str
    content_type: str
    size: int
    file_type: str
    uploaded_at: datetime
    last_accessed_at: datetime

class FileTypeStat(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    type: str
    count: int
    total_size: int = Field(alias="totalSize")

class FileStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    total_files: int = Field(alias="totalFiles")
    total_size: int = Field(alias="totalSize")
    files_by_type: list[FileTypeStat] = Field(alias="filesByType")

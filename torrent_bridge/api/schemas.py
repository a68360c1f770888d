from typing import Optional
from pydantic import BaseModel


class AddTorrentRequest(BaseModel):
    magnet: str
    save_path: Optional[str] = None  # Defaults to DOWNLOAD_DIR
    category: Optional[str] = None


class CategoryRequest(BaseModel):
    category: Optional[str] = None

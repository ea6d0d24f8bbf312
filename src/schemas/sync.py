from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    synced_count: int = Field(description="Overlays created by this call.")
    sync_range: str = Field(description="Range keyword that was applied.")
    total_found: int = Field(description="Class tasks created inside the range.")

from typing import List
from pydantic import BaseModel


class ReportSweepResult(BaseModel):
    processed: List[int] = []
    scanned: int = 0

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from utils.time_utils import utc_now
from .base import Base


class ActionLogModel(Base):
    __tablename__ = "action_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Null for system actions and failed logins
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)  # JSON encoded
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

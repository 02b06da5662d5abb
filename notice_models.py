"""
Notice Models
Notices published by the administration on the public notice board
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Date, Index
from datetime import datetime, date
from models import Base


class Notice(Base):
    __tablename__ = 'notices'
    __table_args__ = (
        Index('idx_notice_published', 'is_published'),
        Index('idx_notice_publish_date', 'publish_date'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    is_published = Column(Boolean, default=False)
    publish_date = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_visible(self, on_date=None):
        """Published and not yet expired"""
        on_date = on_date or date.today()
        if not self.is_published:
            return False
        if self.publish_date and self.publish_date > on_date:
            return False
        return self.expiry_date is None or self.expiry_date >= on_date

    def __repr__(self):
        return f"<Notice id={self.id} title={self.title}>"

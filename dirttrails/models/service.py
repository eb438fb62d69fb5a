from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from dirttrails.core.database import Base
from dirttrails.models.base import TimestampMixin, new_id


class Service(Base, TimestampMixin):
    """Vendor-owned listing (tour, event, stay) that ticket types belong to."""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), nullable=False, index=True)
    title = Column(String(255), nullable=False)

    ticket_types = relationship("TicketType", back_populates="service")

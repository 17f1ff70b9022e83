from sqlalchemy import Column, String, DateTime
from ..database import Base
from ..utils.timeutils import utcnow


class Profile(Base):
    """Public profile owned by the account service; messaging only reads it."""

    __tablename__ = "profiles"
    
    # Primary Key (same id the auth collaborator puts in the token subject)
    id = Column(String(64), primary_key=True, index=True)
    
    # Display
    username = Column(String(100), index=True)
    full_name = Column(String(255))
    display_name = Column(String(255))
    avatar_url = Column(String(1000))
    
    # Crew role label, e.g. "Director", "Cinematographer"
    role = Column(String(100))
    
    # Timestamps
    created_at = Column(DateTime, default=utcnow)

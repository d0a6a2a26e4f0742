"""AppUser model - operators of the point of sale."""
import enum

from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from pos_app.database import Base


class UserRole(str, enum.Enum):
    """Operator roles."""
    ADMIN = 'ADMIN'
    CASHIER = 'CASHIER'


class AppUser(Base):
    """AppUser model - local username/password authentication."""

    __tablename__ = 'app_user'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    username = Column(String(80), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CASHIER.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'role': self.role,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AppUser(id={self.id}, username='{self.username}', role='{self.role}')>"

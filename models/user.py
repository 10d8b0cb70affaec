from models.base_model import Base, BaseModel
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)

    auth_session = relationship(
        "AuthSession",
        back_populates="user",
        uselist=False,
        passive_deletes=True
    )

    def __repr__(self):
        return f"<User username={self.username}>"

# freshcart/models.py
from sqlalchemy import Column, DateTime, Integer, String, func

from .database import Base


# 👤 Учётные данные пользователя
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # уникальный индекс ловит одновременные регистрации, проскочившие проверку в коде
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

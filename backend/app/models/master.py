"""Master data the commission rules point at: lines of business, insurers and products."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class LineOfBusiness(Base):
    __tablename__ = "lines_of_business"

    id = Column(Integer, primary_key=True, index=True)
    lob_name = Column(String, unique=True, nullable=False, index=True)  # e.g. "Health", "Motor"
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    products = relationship("InsuranceProduct", back_populates="lob")


class InsuranceProvider(Base):
    __tablename__ = "insurance_providers"

    id = Column(Integer, primary_key=True, index=True)
    provider_name = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    products = relationship("InsuranceProduct", back_populates="provider")


class InsuranceProduct(Base):
    __tablename__ = "insurance_products"

    id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String, nullable=False)
    provider_id = Column(Integer, ForeignKey("insurance_providers.id"), nullable=True, index=True)
    lob_id = Column(Integer, ForeignKey("lines_of_business.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    provider = relationship("InsuranceProvider", back_populates="products")
    lob = relationship("LineOfBusiness", back_populates="products")

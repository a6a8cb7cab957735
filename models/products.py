from sqlalchemy import Column, String, BigInteger, Integer, Float, Boolean, Text
from models.base import Base


class ProductCatalog(Base):
    """Incisive product catalog"""
    __tablename__ = "incisive_product_catalog"

    incisive_id = Column(BigInteger, primary_key=True, autoincrement=False)
    incisive_name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    sub_category = Column(String(100), nullable=True)


class LabProductMapping(Base):
    """Lab product codes mapped to catalog products"""
    __tablename__ = "lab_product_mapping"

    lab_id = Column(BigInteger, primary_key=True, autoincrement=False)
    lab_product_id = Column(Text, primary_key=True)
    incisive_product_id = Column(BigInteger, nullable=False)


class LabPracticeMapping(Base):
    """Practice identifiers as known to each lab"""
    __tablename__ = "lab_practice_mapping"

    lab_id = Column(BigInteger, primary_key=True, autoincrement=False)
    practice_id = Column(BigInteger, primary_key=True, autoincrement=False)
    lab_practice_id = Column(Text, nullable=False)


class ProductLabMarkup(Base):
    """Lab cost and list prices per lab product"""
    __tablename__ = "product_lab_markup"

    lab_id = Column(BigInteger, primary_key=True, autoincrement=False)
    lab_product_id = Column(Text, primary_key=True)
    incisive_product_id = Column(Integer, nullable=True)
    cost = Column(Float, nullable=True)
    standard_price = Column(Float, nullable=True)
    nf_price = Column(Float, nullable=True)
    commitment_eligible = Column(Boolean, nullable=True)


class ProductLabRevShare(Base):
    """Revenue share per lab product and fee schedule"""
    __tablename__ = "product_lab_rev_share"

    lab_id = Column(BigInteger, primary_key=True, autoincrement=False)
    lab_product_id = Column(Text, primary_key=True)
    fee_schedule_name = Column(Text, primary_key=True)
    incisive_product_id = Column(Integer, nullable=True)
    revenue_share = Column(Float, nullable=True)
    commitment_eligible = Column(Boolean, nullable=True)

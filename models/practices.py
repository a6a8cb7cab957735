from sqlalchemy import Column, String, BigInteger, Boolean, Text
from models.base import Base


class DentalGroup(Base):
    """Dental group organizations (CRM accounts with a corporate id)"""
    __tablename__ = "dental_groups"

    dental_group_id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    address_2 = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    account_type = Column(String(100), nullable=True)
    centralized_billing = Column(Boolean, nullable=True)
    sales_channel = Column(String(100), nullable=True)
    sales_rep = Column(String(255), nullable=True)


class DentalPractice(Base):
    """Practices belonging to a dental group"""
    __tablename__ = "dental_practices"

    practice_id = Column(BigInteger, primary_key=True, autoincrement=False)
    dental_group_id = Column(BigInteger, nullable=False, index=True)
    dental_group_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    address_2 = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    clinical_email = Column(String(255), nullable=True)
    billing_email = Column(String(255), nullable=True)
    incisive_email = Column(String(255), nullable=True)
    preferred_contact_method = Column(String(50), nullable=True)
    fee_schedule = Column(String(100), nullable=True)
    status = Column(String(50), nullable=True)

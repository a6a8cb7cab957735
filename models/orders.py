from sqlalchemy import Column, String, BigInteger, Integer, Float, Date, Text, Index
from models.base import Base


class OrderStage(Base):
    """
    Staging table for lab orders, one row per case product.

    Reloaded on every run (TRUNCATE then INSERT) and folded into the
    permanent orders tables by the ``merge_orders_stage()`` procedure,
    which deduplicates on ``row_hash``.
    """
    __tablename__ = "orders_stage"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    # Case identity
    submissiondate = Column(Date, nullable=False)
    shippingdate = Column(Date, nullable=True)
    casedate = Column(Date, nullable=False)
    caseid = Column(BigInteger, nullable=False)
    productid = Column(String(100), nullable=False)
    productdescription = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    productprice = Column(Float, nullable=True)

    # Patient / customer
    patientname = Column(String(255), nullable=True)
    customerid = Column(String(100), nullable=False)
    customername = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    phonenumber = Column(String(50), nullable=True)

    # Status tracking
    casestatus = Column(String(100), nullable=True)
    holdreason = Column(Text, nullable=True)
    estimatecompletedate = Column(Date, nullable=True)
    requestedreturndate = Column(Date, nullable=True)
    trackingnumber = Column(String(100), nullable=True)
    estimatedshipdate = Column(Date, nullable=True)
    holddate = Column(Date, nullable=True)
    deliverystatus = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    onhold = Column(String(10), nullable=True)

    # Case details
    shade = Column(String(100), nullable=True)
    mold = Column(String(100), nullable=True)
    doctorpreferences = Column(Text, nullable=True)
    productpreferences = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    casetotal = Column(Float, nullable=True)

    # Lineage
    source_file_key = Column(Text, nullable=True)
    row_hash = Column(String(64), nullable=False)

    __table_args__ = (
        Index("idx_orders_stage_case_product", "caseid", "productid"),
        Index("idx_orders_stage_row_hash", "row_hash"),
    )

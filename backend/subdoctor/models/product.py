from sqlalchemy import Column, Integer, Numeric, String

from subdoctor.core.database import Base

SUBSCRIPTION_PRODUCT_TYPES = frozenset(
    {"subscription", "variable-subscription", "subscription_variation"}
)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    product_type = Column(String(50), nullable=False, default="simple")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    subscription_period = Column(String(10), nullable=True)
    subscription_interval = Column(Integer, nullable=True)
    trial_length = Column(Integer, nullable=False, default=0)
    trial_period = Column(String(10), nullable=True)
    sign_up_fee = Column(Numeric(12, 2), nullable=False, default=0)

"""Sample records for dry runs and demos.

Reproduces the reference order: customer C20000, two item lines totalling 34,
billing/shipping addresses in Feltham and a row-total freight charge.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from core.models.documents import (
    AddressBlock,
    DocumentLineInput,
    FreightCharge,
    OrderHeader,
    PaymentDetails,
    SalesOrderInput,
)


def sample_address(street: str) -> AddressBlock:
    return AddressBlock(
        street=street,
        street_no="Clockhouse Place",
        building="Bedfond Road",
        city="Feltham",
        country="GB",
        zip_code="TW14 8HD",
    )


def sample_sales_order(today: Optional[date] = None) -> SalesOrderInput:
    today = today or date.today()
    return SalesOrderInput(
        header=OrderHeader(
            card_code="C20000",
            document_date=today,
            due_date=today + timedelta(days=1),
            total=Decimal("34"),
            currency="$",
        ),
        lines=[
            DocumentLineInput(
                item_code="A00001",
                description="Different Description than SAP's",
                quantity=Decimal("2"),
                unit_price=Decimal("10"),
                currency="$",
                warehouse_code="01",
                vat_group="CA",
            ),
            DocumentLineInput(
                item_code="A00002",
                description="Different Description than SAP's 2",
                quantity=Decimal("1"),
                unit_price=Decimal("5"),
                currency="$",
                warehouse_code="01",
                vat_group="CA",
            ),
        ],
        bill_to=sample_address("Billing"),
        ship_to=sample_address("Shipping"),
        freight=FreightCharge(
            remarks="Manual Remark",
            expense_code=1,
            vat_group="CA",
            tax_code="CA",
            line_total=Decimal("4"),
        ),
    )


def sample_payment_details() -> PaymentDetails:
    return PaymentDetails(reference="PAY-123")

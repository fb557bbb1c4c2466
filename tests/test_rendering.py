from datetime import datetime, timezone

import pytest

from resort_pos.config import RECEIPT_WIDTH
from resort_pos.errors import InvalidArgument, MalformedRecord
from resort_pos.models import Customer, Invoice, OrderLine, OrderRecord, OrderType, PaymentMethod, Service, ServiceTotal
from resort_pos.rendering import (
    amount_to_words,
    format_bill_date,
    format_bill_time,
    format_invoice_preview,
    parse_invoice_total,
    render_invoice_text,
    render_kitchen_ticket,
    render_order_ticket,
)

ISSUED = datetime(2026, 2, 21, 14, 5, 9, tzinfo=timezone.utc)
GUEST = Customer("JJ-1", "Asha", "9876543210", datetime(2026, 2, 21, 9, 0, tzinfo=timezone.utc), room_no="101")
DASHES = "-" * 32


def _invoice(**overrides):
    fields = dict(
        bill_no="B-12",
        invoice_class="Bar",
        service_totals={Service.BAR: ServiceTotal(amount=1180, tax=180)},
        grand_total=1180,
        total_tax=180,
        issued_at=ISSUED,
        customer_id="JJ-1",
    )
    fields.update(overrides)
    return Invoice(**fields)


class TestAmountToWords:
    @pytest.mark.parametrize(
        "amount, words",
        [
            (0, "Zero Only"),
            (7, "Seven Only"),
            (19, "Nineteen Only"),
            (40, "Forty Only"),
            (105, "One Hundred And Five Only"),
            (1180, "One Thousand One Hundred And Eighty Only"),
            (1500, "One Thousand Five Hundred Only"),
            (100000, "One Lakh Only"),
            (250075, "Two Lakh Fifty Thousand Seventy Five Only"),
            (10000000, "One Crore Only"),
            (12345678, "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred And Seventy Eight Only"),
            (1000000000, "One Hundred Crore Only"),
        ],
    )
    def test_indian_numbering(self, amount, words):
        assert amount_to_words(amount) == words

    def test_paise_are_dropped(self):
        assert amount_to_words(99.75) == "Ninety Nine Only"

    def test_negative_rejected(self):
        with pytest.raises(InvalidArgument):
            amount_to_words(-1)


class TestBillDateTime:
    def test_date(self):
        assert format_bill_date(ISSUED) == "21-02-2026"

    def test_time_is_twelve_hour(self):
        assert format_bill_time(ISSUED) == "2:05:09 PM"
        assert format_bill_time(datetime(2026, 1, 1, 0, 7, 0)) == "12:07:00 AM"
        assert format_bill_time(datetime(2026, 1, 1, 12, 0, 0)) == "12:00:00 PM"


class TestInvoiceText:
    def test_layout(self):
        text = render_invoice_text(_invoice(), GUEST)
        lines = text.splitlines()

        assert lines[0].strip() == "SRI KALKI JAM JAM RESORTS"
        assert "Bill No: B-12" in lines
        assert "BAR BILL" in text
        assert lines.count(DASHES) >= 5
        assert "Name: Asha" in lines
        assert "Room: 101" in lines
        assert "ITEM            RATE QTY  AMOUNT" in lines
        assert "Bar             1000   1    1000" in lines
        assert "Tax" + " " * 26 + "180" in lines
        assert "TOTAL" + " " * 23 + "1180" in lines
        assert "Rupees One Thousand One Hundred" in text
        assert "Authorised Signatory" in text
        assert all(len(line) <= RECEIPT_WIDTH for line in lines)

    def test_tax_line_omitted_without_tax(self):
        invoice = _invoice(
            invoice_class="General",
            bill_no="R-3",
            service_totals={
                Service.BAKERY: ServiceTotal(amount=500, tax=0),
                Service.POOL: ServiceTotal(amount=300, tax=0),
            },
            grand_total=800,
            total_tax=0,
        )
        lines = render_invoice_text(invoice, GUEST).splitlines()
        assert not any(line.startswith("Tax") for line in lines)
        assert any(line.startswith("Bakery") and line.endswith("500") for line in lines)
        assert any(line.startswith("Pool") and line.endswith("300") for line in lines)

    @pytest.mark.parametrize("total", [0, 5, 1180, 98765432])
    def test_total_parses_back(self, total):
        invoice = _invoice(service_totals={Service.BAR: ServiceTotal(amount=total, tax=0)}, grand_total=total, total_tax=0)
        text = render_invoice_text(invoice, GUEST)
        assert parse_invoice_total(text) == total
        assert all(len(line) <= RECEIPT_WIDTH for line in text.splitlines())

    def test_crore_amount_moves_figures_to_own_row(self):
        invoice = _invoice(
            service_totals={Service.BAR: ServiceTotal(amount=123456789, tax=0)}, grand_total=123456789, total_tax=0
        )
        lines = render_invoice_text(invoice, GUEST).splitlines()
        row = lines.index("Bar")
        assert lines[row + 1].split() == ["123456789", "x", "1", "123456789"]
        assert all(len(line) <= RECEIPT_WIDTH for line in lines)

    def test_does_not_mutate_invoice(self):
        invoice = _invoice()
        before = dict(invoice.service_totals)
        render_invoice_text(invoice, GUEST)
        assert invoice.service_totals == before

    def test_missing_bill_number(self):
        with pytest.raises(MalformedRecord, match="bill_no"):
            render_invoice_text(_invoice(bill_no=""), GUEST)

    def test_missing_services(self):
        with pytest.raises(MalformedRecord, match="service_totals"):
            render_invoice_text(_invoice(service_totals={}), GUEST)

    def test_totals_must_reconcile(self):
        with pytest.raises(MalformedRecord):
            render_invoice_text(_invoice(grand_total=999), GUEST)

    def test_parse_without_total(self):
        with pytest.raises(MalformedRecord):
            parse_invoice_total("no total here")


class TestKitchenTicket:
    def test_exact_layout(self):
        items = [
            OrderLine("wings", "Chicken Wings", 300, 2, 600, "kitchen"),
            OrderLine("fries", "Fries", 120, 1, 120, "kitchen"),
        ]
        text = render_kitchen_ticket(items, OrderType.DINING, table_no="5", timestamp=datetime(2026, 2, 21, 14, 5))
        expected = "\n".join(
            [
                "",
                DASHES,
                "      KITCHEN ORDER (KOT)      ",
                DASHES,
                "Type:  DINING (Table 5)",
                "Time:  21/02/2026, 02:05 pm",
                DASHES,
                "ITEM                    QTY",
                DASHES,
                "Chicken Wings              2",
                "Fries                      1",
                DASHES,
                "        TOTAL ITEMS: 3",
                DASHES,
            ]
        ) + "\n\n\n\n"
        assert text == expected

    def test_room_service(self):
        items = [OrderLine("cake", "Plum Cake", 250, 1, 250)]
        text = render_kitchen_ticket(items, OrderType.ROOM, room_no="204", timestamp=ISSUED)
        assert "Type:  ROOM SERVICE (204)" in text
        assert "250" not in text

    def test_room_service_without_room(self):
        text = render_kitchen_ticket([OrderLine("c", "Cake", 1, 1, 1)], OrderType.ROOM, timestamp=ISSUED)
        assert "Type:  ROOM SERVICE (N/A)" in text

    def test_unknown_order_type_prints_as_room_service(self):
        text = render_kitchen_ticket([OrderLine("c", "Cake", 1, 1, 1)], None, table_no="4", timestamp=ISSUED)
        assert "Type:  ROOM SERVICE (N/A)" in text

    def test_bar_order_ticket_uses_counter_as_table(self):
        record = OrderRecord(
            order_id="o1",
            customer_id="JJ-1",
            service=Service.BAR,
            items=(OrderLine("wings", "Chicken Wings", 300, 1, 300, "kitchen"),),
            subtotal=300,
            tax_percent=18,
            tax_amount=54,
            total_amount=354,
            payment_method=PaymentMethod.CASH,
            timestamp=ISSUED,
        )
        text = render_order_ticket(record)
        assert "Type:  DINING (Table Bar)" in text
        assert "TOTAL ITEMS: 1" in text

    def test_unnamed_item(self):
        text = render_kitchen_ticket([OrderLine("x", "", 10, 4, 40)], OrderType.DINING, "2", timestamp=ISSUED)
        assert "Item                       4" in text

    def test_bad_quantity(self):
        with pytest.raises(MalformedRecord):
            render_kitchen_ticket([OrderLine("x", "Tea", 10, 0, 0)], OrderType.DINING, "2", timestamp=ISSUED)


class TestPreview:
    def test_preview_mentions_bill_and_total(self):
        preview = format_invoice_preview(_invoice())
        assert "B-12" in preview.plain
        assert "1180" in preview.plain
        assert "Inc. 180 tax" in preview.plain
        assert any("b23a48" in str(span.style) for span in preview.spans)

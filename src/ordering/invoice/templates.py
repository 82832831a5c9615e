"""Document templates — invoice and shipping label rendered as HTML.

Both are pure functions of an aggregate: same input, same document.
"""

import os
from html import escape

from ordering.pricing.engine import quantize


def _money(value):
    return f"{quantize(value):,.2f}"


def _date(value):
    return value.strftime("%d.%m.%Y %H:%M") if value else ""


def _company():
    return {
        "name": os.environ.get("SHIPPER_NAME", "Storefront Ltd."),
        "address": os.environ.get("SHIPPER_ADDRESS", "Ornek Mahallesi, Test Sokak No:1"),
        "city": os.environ.get("SHIPPER_CITY", "Istanbul"),
        "phone": os.environ.get("SHIPPER_PHONE", "+90 212 123 45 67"),
    }


class InvoiceTemplate:
    content_type = "text/html"

    @staticmethod
    def render(order) -> dict:
        company = _company()
        address = order.shipping_address
        rows = "".join(
            "<tr>"
            f"<td>{escape(item.name)}</td>"
            f"<td>{escape(item.sku or '')}</td>"
            f"<td>{item.quantity}</td>"
            f"<td>{_money(item.discount_price if item.discount_price is not None else item.unit_price)}</td>"
            f"<td>{_money(item.subtotal)}</td>"
            "</tr>"
            for item in order.sorted_items
        )
        pricing = order.pricing
        shipping = "Free" if not pricing.shipping_cost else _money(pricing.shipping_cost)
        discount_row = (
            f"<tr><td>Discount{' (' + escape(order.coupon_code) + ')' if order.coupon_code else ''}</td>"
            f"<td>-{_money(pricing.discount)}</td></tr>"
            if pricing.discount
            else ""
        )
        tracking = (
            f"<p><strong>Tracking:</strong> {escape(order.tracking_number)} ({escape(order.carrier_name or '')})</p>"
            if order.tracking_number
            else ""
        )

        body = (
            "<!DOCTYPE html><html><head><meta charset='utf-8'>"
            f"<title>Invoice {escape(order.order_number)}</title></head><body>"
            f"<h1>INVOICE</h1><p>Invoice No: {escape(order.order_number)}</p>"
            f"<p>Date: {_date(order.created_at)}</p>"
            f"<h3>{escape(company['name'])}</h3>"
            f"<p>{escape(company['address'])}, {escape(company['city'])}<br>Tel: {escape(company['phone'])}</p>"
            "<h3>Customer</h3>"
            f"<p><strong>{escape(address.full_name)}</strong><br>{escape(address.address_line1)}<br>"
            f"{escape(address.city)}, {escape(address.state or '')} {escape(address.postal_code or '')}<br>"
            f"Tel: {escape(address.phone or '')}<br>Email: {escape(address.email or '')}</p>"
            f"<p><strong>Status:</strong> {escape(order.status)}<br>"
            f"<strong>Payment:</strong> {escape(order.payment_method)} / {escape(order.payment_status)}</p>"
            f"{tracking}"
            "<table><thead><tr><th>Product</th><th>SKU</th><th>Qty</th><th>Unit Price</th><th>Total</th></tr></thead>"
            f"<tbody>{rows}</tbody></table>"
            "<table class='totals'>"
            f"<tr><td>Subtotal</td><td>{_money(pricing.subtotal)}</td></tr>"
            f"{discount_row}"
            f"<tr><td>Shipping</td><td>{shipping}</td></tr>"
            f"<tr><td>Tax</td><td>{_money(pricing.tax)}</td></tr>"
            f"<tr><td><strong>Total</strong></td><td><strong>{_money(pricing.total)}</strong></td></tr>"
            "</table>"
            "<p>Thank you for your order.</p></body></html>"
        )
        return {
            "filename": f"invoice-{order.order_number}.html",
            "content_type": InvoiceTemplate.content_type,
            "body": body,
        }


class ShippingLabelTemplate:
    content_type = "text/html"

    @staticmethod
    def render(shipment) -> dict:
        sender = shipment.sender
        receiver = shipment.receiver
        package = shipment.package

        def contact(block):
            return (
                f"<p>{escape(block.full_name)}<br>{escape(block.address or '')}<br>"
                f"{escape(block.city)} / {escape(block.district or '')}<br>Tel: {escape(block.phone or '')}</p>"
            )

        body = (
            "<!DOCTYPE html><html><head><meta charset='utf-8'>"
            f"<title>Label {escape(shipment.tracking_number)}</title></head><body>"
            f"<h2>{escape(shipment.carrier)}</h2>"
            f"<p class='barcode'>{escape(shipment.tracking_number)}</p>"
            f"<h3>Sender</h3>{contact(sender)}"
            f"<h3>Receiver</h3>{contact(receiver)}"
            f"<p>Order: {escape(shipment.order_number or str(shipment.order_id))}<br>"
            f"Weight: {package.weight} kg, Desi: {package.billable_weight}<br>"
            f"Declared value: {_money(package.declared_value)}</p>"
            "</body></html>"
        )
        return {
            "filename": f"label-{shipment.tracking_number}.html",
            "content_type": ShippingLabelTemplate.content_type,
            "body": body,
        }


def render_invoice(order) -> dict:
    return InvoiceTemplate.render(order)


def render_shipping_label(shipment) -> dict:
    return ShippingLabelTemplate.render(shipment)

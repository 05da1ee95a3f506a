from domain.payment.receipt import Receipt, ReceiptAudience
from infrastructure.receipts.pdf import ReportLabReceiptRenderer


def _receipt(succeeded_metadata, **overrides) -> Receipt:
    meta = {**succeeded_metadata, **overrides}
    return Receipt.from_payment(
        payment_id="pi_paid",
        amount_minor=115000,
        currency="php",
        metadata=meta,
        customer_id="cus_1",
    )


def test_receipt_from_payment(succeeded_metadata):
    r = _receipt(succeeded_metadata)
    assert r.receipt_number == "pi_paid"
    assert r.currency == "PHP"
    assert r.display_date == "October 19, 2026"
    assert r.money(r.breakdown.total) == "PHP 1,150.00"
    assert r.payer_email == "payer@example.com"


def test_render_pdf_for_both_audiences(succeeded_metadata):
    renderer = ReportLabReceiptRenderer(brand_name="Marketplace")
    receipt = _receipt(succeeded_metadata)
    for audience in ReceiptAudience:
        data = renderer.render(receipt, audience)
        assert data.startswith(b"%PDF")
        assert len(data) > 500


def test_render_html_escapes_user_text(succeeded_metadata):
    renderer = ReportLabReceiptRenderer()
    receipt = _receipt(succeeded_metadata, serviceDescription="Cleaning <b>& more</b>")
    html = renderer.render_html(receipt, ReceiptAudience.PROVIDER)
    assert "Cleaning &lt;b&gt;&amp; more&lt;/b&gt;" in html
    assert "PHP 150.00" in html
    assert "pi_paid" in html
    # the PDF path escapes too
    assert renderer.render(receipt, ReceiptAudience.PROVIDER).startswith(b"%PDF")

from fpdf import FPDF
from fpdf.enums import EncryptionMethod

from .crypto_utils import random_owner_password


def _latin1(text):
    # core PDF fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


def generate_invoice(vote, poll, voter, user_password=None):
    """Render the vote receipt; AES-256 encrypt it when ``user_password`` is given."""
    pdf = FPDF(format="A4")
    pdf.set_margins(18, 18, 18)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 12, "Vote Invoice", new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.ln(4)

    def line(text, style=""):
        pdf.set_font("Helvetica", style, 12)
        pdf.cell(0, 8, _latin1(text), new_x="LMARGIN", new_y="NEXT")

    created = vote.get("created_at")
    line(f"Invoice ID: {vote['_id']}")
    line(f"Date: {created.strftime('%Y-%m-%d %H:%M:%S UTC') if created else '-'}")
    pdf.ln(4)

    line("Voter Information:", "U")
    line(f"Wallet Address: {voter.get('wallet_address')}")
    if voter.get("name"):
        line(f"Name: {voter['name']}")
    pdf.ln(4)

    line("Vote Details:", "U")
    line(f"Poll: {poll.get('title')}")
    line(f'Voted for: "{vote.get("option_text")}"')
    if vote.get("tx_hash"):
        line(f"Transaction: {vote['tx_hash']}")
    pdf.ln(8)

    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 6, "Thank you for participating in the vote.", new_x="LMARGIN", new_y="NEXT", align="C")

    if user_password:
        pdf.set_encryption(
            owner_password=random_owner_password(),
            user_password=user_password,
            encryption_method=EncryptionMethod.AES_256,
        )
    return bytes(pdf.output())

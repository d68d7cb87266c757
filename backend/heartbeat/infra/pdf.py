# heartbeat/infra/pdf.py
"""
Export PDF d'un pulse analysé (reportlab).

L'analyse est du HTML produit par le LLM : on n'en garde que la structure
(titres, paragraphes, listes, blocs .warning), le texte est échappé.
"""
import io
from datetime import datetime, timezone
from html.parser import HTMLParser
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

BLOCK_TAGS = {"h1", "h2", "h3", "h4", "p", "li"}

# (tag, texte, dans un bloc warning)
Block = Tuple[str, str, bool]


class AnalysisHtmlParser(HTMLParser):

    def __init__(self):
        super().__init__()
        self.blocks: List[Block] = []
        self._tag = None
        self._buf: List[str] = []
        self._divs: List[bool] = []

    def handle_starttag(self, tag, attrs):
        if tag == "div":
            self._flush()
            classes = (dict(attrs).get("class") or "").split()
            self._divs.append("warning" in classes)
        elif tag in BLOCK_TAGS:
            self._flush()
            self._tag = tag
        elif tag == "br":
            self._buf.append(" ")

    def handle_endtag(self, tag):
        if tag in BLOCK_TAGS:
            self._flush()
        elif tag == "div":
            self._flush()
            if self._divs:
                self._divs.pop()

    def handle_data(self, data):
        self._buf.append(data)

    def close(self):
        super().close()
        self._flush()

    def _flush(self):
        text = " ".join("".join(self._buf).split())
        if text:
            self.blocks.append((self._tag or "p", text, any(self._divs)))
        self._buf = []
        self._tag = None


def html_blocks(html: str) -> List[Block]:
    parser = AnalysisHtmlParser()
    parser.feed(html or "")
    parser.close()
    return parser.blocks


def render_pulse_pdf(pulse, generated_at: Optional[datetime] = None) -> bytes:
    generated_at = generated_at or datetime.now(timezone.utc)
    styles = getSampleStyleSheet()
    warning_style = ParagraphStyle(
        "Warning",
        parent=styles["BodyText"],
        backColor=colors.HexColor("#fff0f0"),
        borderColor=colors.HexColor("#ffb0b0"),
        borderWidth=1,
        borderPadding=8,
        spaceBefore=8,
        spaceAfter=8,
    )
    footer_style = ParagraphStyle(
        "Footer", parent=styles["Normal"], fontSize=8, textColor=colors.HexColor("#777777"), alignment=1
    )
    by_tag = {
        "h1": styles["Heading1"],
        "h2": styles["Heading2"],
        "h3": styles["Heading3"],
        "h4": styles["Heading4"],
        "p": styles["BodyText"],
        "li": styles["BodyText"],
    }

    emails = list(pulse.emails or [])
    created = pulse.created_at.strftime("%Y-%m-%d") if pulse.created_at else "—"

    elements = [
        Paragraph("Pulse Analysis Summary", styles["Title"]),
        Paragraph(f"<b>Pulse Name:</b> {escape(pulse.name or 'Unnamed Pulse')}", styles["Normal"]),
        Paragraph(f"<b>Created:</b> {created}", styles["Normal"]),
        Paragraph(f"<b>Response Count:</b> {pulse.response_count or 0} / {len(emails)}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Response Details", styles["Heading2"]),
        Paragraph("The following email addresses have responded to this pulse survey:", styles["Normal"]),
    ]
    # Réponses supprimées après analyse → on liste les destinataires
    for email in emails:
        elements.append(Paragraph(escape(email), styles["BodyText"], bulletText="•"))

    elements += [Spacer(1, 12), Paragraph("Analysis:", styles["Heading2"])]
    for tag, text, is_warning in html_blocks(pulse.analysis_content):
        style = warning_style if is_warning else by_tag.get(tag, styles["BodyText"])
        bullet = "•" if tag == "li" else None
        elements.append(Paragraph(escape(text), style, bulletText=bullet))

    elements += [
        Spacer(1, 24),
        Paragraph(
            f"Generated on {generated_at.strftime('%Y-%m-%d %H:%M')} UTC • Heartbeat - Anonymous Pulse Surveys",
            footer_style,
        ),
    ]

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4, title=f"Pulse Analysis: {pulse.name or pulse.id}",
        leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36,
    )
    doc.build(elements)
    return buf.getvalue()

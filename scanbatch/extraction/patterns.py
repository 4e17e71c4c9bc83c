"""Regular expressions shared by several page parsers."""

import re

PHONE = r"(\(?\d{3}\)?\s*[-.]?\s*\d{3}\s*[-.]?\s*\d{4})"

CITY_STATE_ZIP = re.compile(r"^([A-Z][A-Za-z\s]+,\s*[A-Z]{2}\s+\d{5}(?:-\d{4})?)$")

STREET_SUFFIX = (
    r"(?:Street|Court|Avenue|Boulevard|Drive|Road|Lane|Place|Circle|Highway|Parkway|Trail"
    r"|St\.?|Ave\.?|B[il1]vd\.?|Dr\.?|Rd\.?|Way|Ln\.?|Ct\.?|Pl\.?|Cir\.?|Hwy\.?|Pkwy\.?|Trl\.?)"
)

# "Ave. NE", "St. SW"
DIRECTIONAL_SUFFIX = r"(?:\s+(?:N|S|E|W|NE|NW|SE|SW)\.?)?"

# A digit before the decimal point rejects OCR fragments like ",466.79".
DOLLAR_AMOUNT = re.compile(r"\$?\s*(\d[\d,]*\.\d{2})")

# Order ids: seven or more digits followed by a short letter suffix, e.g. 03025781ND.
ORDER_ID_TOKEN = re.compile(r"\b\d{7,}[A-Z]{1,2}\b", re.IGNORECASE)


def parse_money(value: str) -> float:
    return float(value.replace(",", ""))

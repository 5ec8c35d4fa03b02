import html
import re
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Clean admin-supplied free text (menu names, recipes) before storing it.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Unescapes what bleach escaped, so the stored value is plain text
      ("Spicy <3 wings", "Fish & Chips")
    - Collapses runs of whitespace and trims
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, tags=set(), strip=True)
    val = html.unescape(val)
    val = re.sub(r"\s+", " ", val)
    return val.strip()

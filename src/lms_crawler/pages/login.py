"""Login page - tells a rejected login apart from a slow one.

Moodle re-renders the login form with an error block when credentials are
rejected:

  <div class="loginerrors">
    <a id="loginerrormessage" class="accesshide">Invalid login, please try again</a>
    <div class="alert alert-danger">Invalid login, please try again</div>
  </div>
"""

from src.lms_crawler.pages.base import PageSnapshot, element_text

LOGIN_ERROR_SELECTORS = (".loginerrors", "#loginerrormessage")


def login_error(snapshot: PageSnapshot) -> str | None:
    """The login error message shown on the page, if any."""
    for selector in LOGIN_ERROR_SELECTORS:
        element = snapshot.soup.select_one(selector)
        if element is None:
            continue
        # The anchor itself is screen-reader-only, so element_text may skip it
        return element_text(element) or element.get_text(" ", strip=True) or "Invalid login"
    return None

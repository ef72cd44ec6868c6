# ABOUTME: Shared pytest fixtures with representative wiki page markup
# ABOUTME: One fixture per ACS component layout plus plain and fallback-only pages

import pytest

BASE_URL = "https://scp-wiki.wikidot.com"

ACS_BAR_HTML = """
<html><body>
<div id="page-title">SCP-173</div>
<div id="page-content">
  <div class="anom-bar-container">
    <div class="top-right-box">
      <div class="level">LEVEL 3/EE-7372</div>
      <div class="clearance">Confidential</div>
    </div>
    <div class="contain-class">
      <div class="class-category">Containment Class:</div>
      <div class="class-text">{contain}</div>
    </div>
    <div class="second-class">
      <div class="class-category">Secondary Class:</div>
      <div class="class-text">{{$secondary-class}}</div>
    </div>
    <div class="disrupt-class">
      <div class="class-category">Disruption Class:</div>
      <div class="class-text">{disrupt}</div>
    </div>
    <div class="risk-class">
      <div class="class-category">Risk Class:</div>
      <div class="class-text">{risk}</div>
    </div>
  </div>
  <p>Special Containment Procedures: ...</p>
</div>
</body></html>
"""

FALLBACK_HTML = """
<html><body>
<div id="page-title">SCP-999</div>
<div id="page-content">
  <p><strong>Item #:</strong> SCP-999</p>
  <p>SCP-999 is classified as Keter-class, pending review by the O5 Council.</p>
</div>
</body></html>
"""

PLAIN_HTML = """
<html><body>
<div id="page-title">SCP-4000</div>
<div id="page-content"><p>Object Class: Safe</p><p>Nothing to see here.</p></div>
</body></html>
"""


def acs_bar_page(contain: str = "euclid", disrupt: str = "2/vlam", risk: str = "3/notice") -> str:
    return ACS_BAR_HTML.format(contain=contain, disrupt=disrupt, risk=risk)


@pytest.fixture
def acs_bar_html() -> str:
    return acs_bar_page()


@pytest.fixture
def fallback_html() -> str:
    return FALLBACK_HTML


@pytest.fixture
def plain_html() -> str:
    return PLAIN_HTML


@pytest.fixture
def make_acs_bar():
    """Factory for ACS bar pages with custom class values."""
    return acs_bar_page

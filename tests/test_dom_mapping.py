"""
Tests for DOM mapping, selectors and the fill run against a synthetic portal.

These tests use Playwright to verify that our selectors and the client work
correctly with synthetic HTML that mimics the Meckano structure: a login
form, the dashboard, and a monthly report whose time cells switch between a
display span and an edit input.
"""

import random

import pytest
from playwright.sync_api import sync_playwright, Page

from meckano_bot.config import Config, FillTiming
from meckano_bot.playwright_client import (
    AuthenticationError,
    CellFiller,
    MeckanoClient,
    NavigationError,
    iter_rows,
    read_current_value,
)
from meckano_bot.selectors import MeckanoSelectors
from meckano_bot.time_utils import is_valid_time_format


PORTAL_URL = "https://meckano.test/"

# Cells commit on Enter. data-mode="reject" mimics a cell that never keeps
# the typed value; data-mode="slow" renders the committed value late.
CELL_SCRIPT = """
<script>
document.querySelectorAll('td.time').forEach(function (cell) {
  var input = cell.querySelector('input');
  var shown = cell.querySelectorAll('span')[1];
  cell.addEventListener('click', function () {
    input.style.display = 'inline';
    input.focus();
  });
  input.addEventListener('keydown', function (event) {
    if (event.key !== 'Enter') return;
    var mode = cell.dataset.mode;
    input.style.display = 'none';
    if (mode === 'reject') {
      shown.textContent = '--:--';
    } else if (mode === 'slow') {
      var value = input.value;
      shown.textContent = '';
      setTimeout(function () { shown.textContent = value; }, 150);
    } else {
      shown.textContent = input.value;
    }
  });
});
</script>
"""

STYLE = "<style>td { width: 90px; height: 28px; }</style>"


def date_cell(label):
    return f'<td class="date"><span><div><div><p>{label}</p></div></div></span></td>'


def time_cell(value="", mode="accept", editing=False):
    input_style = "inline" if editing else "none"
    shown = "" if editing else value
    return (
        f'<td class="time" data-mode="{mode}">'
        f'<span class="icon">&#9201;</span><span class="shown">{shown}</span>'
        f'<input type="text" style="display:{input_style}" value="{value}">'
        f'</td>'
    )


def report_row(label, entrance="", exit="", entrance_mode="accept", exit_mode="accept"):
    return (
        f'<tr><td class="num">1</td>{date_cell(label)}'
        f'{time_cell(entrance, entrance_mode)}{time_cell(exit, exit_mode)}'
        f'<td class="total"></td></tr>'
    )


def nested_table_row(label):
    """Report row whose first cell holds a table with four cells of its own."""
    inner = (
        '<table class="badge"><tbody><tr>'
        '<td>a</td><td>b</td><td>c</td><td>d</td>'
        '</tr></tbody></table>'
    )
    return (
        f'<tr><td class="num">{inner}</td>{date_cell(label)}'
        f'{time_cell()}{time_cell()}<td class="total"></td></tr>'
    )


def malformed_row():
    return '<tr><td colspan="4">סה"כ</td><td></td></tr>'


def report_table(*rows):
    return (
        '<table class="employee-report"><thead><tr>'
        '<th>#</th><th>תאריך</th><th>כניסה</th><th>יציאה</th><th>סה"כ</th>'
        '</tr></thead><tbody>' + "".join(rows) + '</tbody></table>'
    )


def report_page(*rows):
    return (
        '<!DOCTYPE html><html dir="rtl"><head><meta charset="utf-8">'
        f'{STYLE}</head><body><div id="mainview"><div>{report_table(*rows)}</div></div>'
        f'{CELL_SCRIPT}</body></html>'
    )


def portal_page(*rows, mfa=False):
    """Login form, dashboard and report in one single-page document."""
    on_login = (
        "document.getElementById('mfa').style.display = 'block';"
        if mfa else "enterDashboard();"
    )
    return f"""<!DOCTYPE html>
<html dir="rtl"><head><meta charset="utf-8">{STYLE}</head><body>
<div id="login">
  <label for="email">אימייל</label><input id="email" type="text">
  <label for="password">סיסמה</label><input id="password" type="password">
  <button type="button" id="submit">התחברות</button>
</div>
<div id="mfa" style="display:none">
  <input id="numberInput" type="text">
</div>
<div id="dashboard" style="display:none">
  <button type="button">כפתור כניסה</button>
  <a href="#report" id="report-link">דוח חודשי</a>
</div>
<div id="mainview" style="display:none"><div>{report_table(*rows)}</div></div>
<div class="modal" role="dialog" id="notice" style="display:none">
  <p>עדכון מערכת</p>
  <button type="button" class="close">x</button>
</div>
{CELL_SCRIPT}
<script>
function enterDashboard() {{
  document.getElementById('login').style.display = 'none';
  document.getElementById('mfa').style.display = 'none';
  document.getElementById('dashboard').style.display = 'block';
  location.hash = '#dashboard';
}}
document.getElementById('submit').addEventListener('click', function () {{
  var ok = document.getElementById('email').value === 'worker@example.com'
        && document.getElementById('password').value === 's3cret';
  if (ok) {{ {on_login} }}
}});
document.getElementById('numberInput').addEventListener('keydown', function (event) {{
  if (event.key === 'Enter' && this.value === '123456') enterDashboard();
}});
document.getElementById('report-link').addEventListener('click', function (event) {{
  event.preventDefault();
  document.getElementById('mainview').style.display = 'block';
  document.getElementById('notice').style.display = 'block';
}});
document.querySelector('#notice .close').addEventListener('click', function () {{
  document.getElementById('notice').style.display = 'none';
}});
</script>
</body></html>"""


FAST_TIMING = FillTiming(
    focus_delay=0,
    type_delay=0,
    commit_settle=0,
    verify_timeout=1000,
    empty_display_wait=500,
    retry_backoff=0,
    row_settle=0,
    next_row_timeout=300,
    next_row_settle=0,
    dialog_timeout=500,
    poll_interval=100,
)


@pytest.fixture(scope="module")
def browser():
    """Create a browser instance for tests."""
    with sync_playwright() as p:
        browser = p.chromium.launch()
        yield browser
        browser.close()


@pytest.fixture
def page(browser):
    """Create a new page for each test."""
    context = browser.new_context()
    page = context.new_page()
    yield page
    context.close()


@pytest.fixture
def config():
    return Config(
        email='worker@example.com',
        password='s3cret',
        base_url=PORTAL_URL,
        login_timeout=2000,
        navigation_timeout=3000,
        element_timeout=3000,
        timing=FAST_TIMING,
        headless=True,
    )


@pytest.fixture
def client(config, page):
    """Client bound to the test page instead of its own browser."""
    client = MeckanoClient(config, rng=random.Random(42))
    client.page = page
    return client


def serve(page: Page, html: str):
    page.route(
        PORTAL_URL + "**",
        lambda route: route.fulfill(status=200, content_type="text/html; charset=utf-8", body=html)
    )


def report_cell(page: Page, row: int, column: int):
    rows = page.locator(MeckanoSelectors.REPORT_ROWS)
    return rows.nth(row).locator(MeckanoSelectors.ROW_CELLS).nth(column)


def shown_value(page: Page, row: int, column: int) -> str:
    cell = report_cell(page, row, column)
    return cell.locator('span').nth(1).inner_text().strip()


class TestMeckanoSelectors:
    """Tests for report selectors against the synthetic table."""

    def test_rows_selector(self, page: Page):
        """Test that the rows selector finds only body rows."""
        page.set_content(report_page(report_row("01/10/2026 ה'"), malformed_row()))
        assert page.locator(MeckanoSelectors.REPORT_ROWS).count() == 2

    def test_date_label_selector(self, page: Page):
        """Test that the date label is read from the nested paragraph."""
        page.set_content(report_page(report_row("01/10/2026 ה'")))
        date = report_cell(page, 0, MeckanoSelectors.DATE_CELL_INDEX)
        label = date.locator(MeckanoSelectors.DATE_LABEL).first
        assert label.text_content().strip() == "01/10/2026 ה'"

    def test_non_workday_labels(self):
        """Test weekend glyph classification."""
        assert MeckanoSelectors.is_non_workday_label("02/10/2026 ו'") is True
        assert MeckanoSelectors.is_non_workday_label("03/10/2026 ש'") is True
        assert MeckanoSelectors.is_non_workday_label("04/10/2026 א'") is False
        assert MeckanoSelectors.is_non_workday_label("") is False


class TestIterRows:
    """Tests for the row enumerator."""

    def test_records(self, page: Page):
        """Test classification of regular, weekend and malformed rows."""
        page.set_content(report_page(
            report_row("01/10/2026 ה'"),
            report_row("02/10/2026 ו'"),
            malformed_row(),
        ))

        records = list(iter_rows(page.locator(MeckanoSelectors.REPORT_ROWS)))

        assert [r.index for r in records] == [0, 1, 2]
        assert records[0].date_label == "01/10/2026 ה'"
        assert records[0].is_non_workday is False
        assert records[0].is_malformed is False
        assert records[1].is_non_workday is True
        assert records[2].is_malformed is True
        assert records[2].cell_count == 2

    def test_nested_table_rows_are_not_report_rows(self, page: Page):
        """Test that a table inside a cell adds neither rows nor cells."""
        page.set_content(report_page(nested_table_row("01/10/2026 ה'")))

        rows = page.locator(MeckanoSelectors.REPORT_ROWS)
        assert rows.count() == 1
        assert page.locator(MeckanoSelectors.REPORT_TABLE).count() == 1

        records = list(iter_rows(rows))

        assert len(records) == 1
        assert records[0].cell_count == 5
        assert records[0].date_label == "01/10/2026 ה'"

    def test_enumeration_is_single_pass(self, page: Page):
        """Test that the generator is exhausted after one pass."""
        page.set_content(report_page(report_row("01/10/2026 ה'")))

        rows = iter_rows(page.locator(MeckanoSelectors.REPORT_ROWS))
        assert len(list(rows)) == 1
        assert list(rows) == []


class TestReadCurrentValueDom:
    """Tests for read_current_value against both rendering modes."""

    def test_empty_cell(self, page: Page):
        """Test that an empty display with a hidden input reads as empty."""
        page.set_content(report_page(report_row("א'")))
        cell = report_cell(page, 0, 2)
        assert read_current_value(cell) == ""

    def test_display_value(self, page: Page):
        """Test that a committed value is read from the display span."""
        page.set_content(report_page(report_row("א'", entrance="08:05")))
        cell = report_cell(page, 0, 2)
        assert read_current_value(cell) == "08:05"

    def test_editing_value(self, page: Page):
        """Test that a visible input's value is read while editing."""
        html = report_page(
            f'<tr><td>1</td>{date_cell("א")}{time_cell("07:55", editing=True)}'
            f'{time_cell()}<td></td></tr>'
        )
        page.set_content(html)
        cell = report_cell(page, 0, 2)
        assert read_current_value(cell) == "07:55"


class TestCellFillerDom:
    """Tests for CellFiller against interactive cells."""

    def test_fill_empty_cell(self, page: Page):
        """Test typing, committing and verifying a value."""
        page.set_content(report_page(report_row("א'")))
        cell = report_cell(page, 0, 2)

        outcome = CellFiller(page, FAST_TIMING).fill(cell, "08:20", "entrance")

        assert outcome.succeeded is True
        assert outcome.wrote_value is True
        assert outcome.attempts == 1
        assert shown_value(page, 0, 2) == "08:20"

    def test_slow_render_is_waited_for(self, page: Page):
        """Test that a late display update is picked up by the second read."""
        page.set_content(report_page(report_row("א'", entrance_mode="slow")))
        cell = report_cell(page, 0, 2)

        outcome = CellFiller(page, FAST_TIMING).fill(cell, "08:20")

        assert outcome.succeeded is True
        assert outcome.attempts == 1

    def test_rejected_value_fails_after_three_attempts(self, page: Page):
        """Test that a cell that never keeps the value ends in failure."""
        page.set_content(report_page(report_row("א'", entrance_mode="reject")))
        cell = report_cell(page, 0, 2)

        outcome = CellFiller(page, FAST_TIMING).fill(cell, "08:20")

        assert outcome.succeeded is False
        assert outcome.attempts == 3
        assert outcome.final_value == "--:--"

    def test_existing_value_untouched(self, page: Page):
        """Test that a filled cell keeps its value."""
        page.set_content(report_page(report_row("א'", entrance="08:05")))
        cell = report_cell(page, 0, 2)

        outcome = CellFiller(page, FAST_TIMING).fill(cell, "09:00")

        assert outcome.was_already_present is True
        assert shown_value(page, 0, 2) == "08:05"


class TestFillMonthlyReportDom:
    """End-to-end row loop tests against the synthetic report."""

    def test_five_row_scenario(self, client: MeckanoClient, page: Page):
        """Test processed=3, skipped=2, errors=0 with one weekend and one malformed row."""
        page.set_content(report_page(
            report_row("01/10/2026 ה'"),
            report_row("04/10/2026 א'"),
            report_row("03/10/2026 ש'"),
            malformed_row(),
            report_row("05/10/2026 ב'"),
        ))

        summary = client.fill_monthly_report()

        assert summary.total_rows == 5
        assert summary.processed == 3
        assert summary.skipped == 2
        assert summary.errors == 0
        assert summary.filled == 3

        for row in (0, 1, 4):
            assert is_valid_time_format(shown_value(page, row, 2))
            assert is_valid_time_format(shown_value(page, row, 3))

        # Weekend row untouched
        assert shown_value(page, 2, 2) == ""
        assert shown_value(page, 2, 3) == ""

    def test_existing_values_never_overwritten(self, client: MeckanoClient, page: Page):
        """Test that prefilled cells survive and empty siblings get filled."""
        page.set_content(report_page(
            report_row("01/10/2026 ה'", entrance="08:00", exit="17:00"),
            report_row("04/10/2026 א'", entrance="08:30"),
        ))

        summary = client.fill_monthly_report()

        assert summary.processed == 2
        assert summary.filled == 1
        assert shown_value(page, 0, 2) == "08:00"
        assert shown_value(page, 0, 3) == "17:00"
        assert shown_value(page, 1, 2) == "08:30"
        assert is_valid_time_format(shown_value(page, 1, 3))

    def test_nested_table_is_not_filled(self, client: MeckanoClient, page: Page):
        """Test that only the report row is counted and filled."""
        page.set_content(report_page(nested_table_row("01/10/2026 ה'")))

        summary = client.fill_monthly_report()

        assert summary.total_rows == 1
        assert summary.processed == 1
        assert summary.errors == 0
        assert is_valid_time_format(shown_value(page, 0, 2))
        assert is_valid_time_format(shown_value(page, 0, 3))
        assert page.locator('table.badge td').all_inner_texts() == ['a', 'b', 'c', 'd']

    def test_failed_row_does_not_stop_run(self, client: MeckanoClient, page: Page):
        """Test that a rejecting cell errors its row and later rows still fill."""
        page.set_content(report_page(
            report_row("01/10/2026 ה'", entrance_mode="reject"),
            report_row("04/10/2026 א'"),
            malformed_row(),
        ))

        summary = client.fill_monthly_report()

        assert summary.errors == 1
        assert summary.processed == 1
        assert summary.skipped == 1
        # Exit of the failed row is abandoned
        assert shown_value(page, 0, 3) == ""
        assert is_valid_time_format(shown_value(page, 1, 2))


class TestSessionBootstrap:
    """Tests for login, second factor, report navigation and dialog dismissal."""

    def test_login_and_open_report(self, client: MeckanoClient, page: Page):
        """Test the full bootstrap against the synthetic portal."""
        serve(page, portal_page(report_row("01/10/2026 ה'")))

        client.login()
        assert page.url.endswith("#dashboard")

        client.open_monthly_report()
        assert page.locator(MeckanoSelectors.REPORT_TABLE).is_visible()
        # Blocking notice was dismissed
        assert page.locator('#notice').is_hidden()

        summary = client.fill_monthly_report()
        assert summary.processed == 1

    def test_wrong_credentials_fail_fatally(self, config: Config, page: Page):
        """Test that staying on the login page raises AuthenticationError."""
        config.password = 'wrong'
        client = MeckanoClient(config)
        client.page = page
        serve(page, portal_page(report_row("א'")))

        with pytest.raises(AuthenticationError, match="Not authenticated"):
            client.login()

    def test_confirmation_code_in_headless_mode(self, client: MeckanoClient, page: Page,
                                                monkeypatch):
        """Test that the code is read from the terminal and submitted."""
        monkeypatch.setattr('builtins.input', lambda *args: '123456')
        serve(page, portal_page(report_row("א'"), mfa=True))

        client.login()

        assert page.url.endswith("#dashboard")

    def test_missing_report_link(self, client: MeckanoClient, page: Page):
        """Test that a dashboard without the report raises NavigationError."""
        page.set_content('<html><body><p>empty</p></body></html>')

        with pytest.raises(NavigationError):
            client.open_monthly_report()

    def test_dismiss_without_dialog(self, client: MeckanoClient, page: Page):
        """Test that a missing dialog is not an error."""
        page.set_content('<html><body><p>no dialog</p></body></html>')
        assert client.dismiss_blocking_dialog() is False

    def test_dismiss_with_escape(self, client: MeckanoClient, page: Page):
        """Test dismissal via Escape when the dialog has no close control."""
        page.set_content("""
        <html><body>
        <div role="dialog" id="d" tabindex="-1">notice</div>
        <script>
          document.addEventListener('keydown', function (event) {
            if (event.key === 'Escape') document.getElementById('d').style.display = 'none';
          });
        </script>
        </body></html>
        """)

        assert client.dismiss_blocking_dialog() is True
        assert page.locator('#d').is_hidden()

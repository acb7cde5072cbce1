"""
Playwright client for the Meckano portal.

This module handles all browser automation using Playwright: logging in,
opening the monthly employee report, reading its rows and filling the
entrance/exit cells of every work day that is still empty.
"""

import random
import time
from typing import Iterator, List, Optional

from playwright.sync_api import (
    sync_playwright,
    Browser,
    BrowserContext,
    Page,
    Locator,
    Error as PlaywrightError,
)

from .config import Config, FillTiming
from .models import RowRecord, FillOutcome, RunSummary, TimeEntry
from .selectors import MeckanoSelectors
from .time_utils import is_valid_time_format, generate_time_entry
from .logging_utils import get_logger, log_step, log_error, log_warning, log_success, log_skip


MAX_FILL_ATTEMPTS = 3


class BootstrapError(Exception):
    """Raised when the session cannot reach the monthly report."""
    pass


class AuthenticationError(BootstrapError):
    """Raised when the portal does not reach the authenticated state in time."""
    pass


class NavigationError(BootstrapError):
    """Raised when the portal or the monthly report view cannot be opened."""
    pass


def read_current_value(cell: Locator) -> str:
    """
    Read the value a time cell currently holds.

    The cell renders either an edit control or a display span. A visible
    input wins; otherwise the display span's text is used. A cell with
    neither is empty.

    Args:
        cell: Locator of the time cell

    Returns:
        Current value, stripped ("" when empty)
    """
    input_locator = cell.locator(MeckanoSelectors.CELL_INPUT)
    if input_locator.count() > 0 and input_locator.first.is_visible():
        return input_locator.first.input_value().strip()

    display = cell.locator(MeckanoSelectors.CELL_TEXT).nth(MeckanoSelectors.CELL_TEXT_INDEX)
    if display.count() == 0:
        return ""
    return (display.inner_text() or "").strip()


def iter_rows(rows: Locator) -> Iterator[RowRecord]:
    """
    Read the report table body into RowRecords, in document order.

    This is a single pass over the live table: the yielded cell handles go
    stale once the page re-renders, so enumerate again rather than reuse.

    Args:
        rows: Locator matching the table body rows

    Yields:
        One RowRecord per row; rows with too few cells carry no handles
    """
    row_count = rows.count()

    for index in range(row_count):
        cells = rows.nth(index).locator(MeckanoSelectors.ROW_CELLS)
        cell_count = cells.count()

        if cell_count < MeckanoSelectors.MIN_ROW_CELLS:
            yield RowRecord(index=index, cell_count=cell_count)
            continue

        label_locator = cells.nth(MeckanoSelectors.DATE_CELL_INDEX).locator(
            MeckanoSelectors.DATE_LABEL
        ).first
        date_label = ""
        if label_locator.count() > 0:
            date_label = (label_locator.text_content() or "").strip()

        yield RowRecord(
            index=index,
            date_label=date_label,
            is_non_workday=MeckanoSelectors.is_non_workday_label(date_label),
            entrance_cell=cells.nth(MeckanoSelectors.ENTRANCE_CELL_INDEX),
            exit_cell=cells.nth(MeckanoSelectors.EXIT_CELL_INDEX),
            cell_count=cell_count,
        )


class CellFiller:
    """
    Writes a time into an empty report cell and verifies the portal kept it.

    A cell that already shows a value is never touched.
    """

    def __init__(self, page: Page, timing: FillTiming, max_attempts: int = MAX_FILL_ATTEMPTS):
        self.page = page
        self.timing = timing
        self.max_attempts = max_attempts
        self.logger = get_logger()

    def fill(self, cell: Locator, value: str, name: str = "cell") -> FillOutcome:
        """
        Ensure a cell holds a value without clobbering existing data.

        Args:
            cell: Locator of the time cell
            value: Target time as HH:MM
            name: Cell name used in log lines

        Returns:
            Outcome of the fill; failures are reported, not raised, once
            the write loop has started
        """
        current = read_current_value(cell)
        if current:
            log_skip(f"    {name}: already contains '{current}'", self.logger)
            return FillOutcome(succeeded=True, final_value=current, was_already_present=True)

        if not is_valid_time_format(value):
            error = f"Invalid time format (expected HH:MM): {value!r}"
            log_error(f"    {name}: {error}", self.logger)
            return FillOutcome(succeeded=False, error_detail=error)

        display = cell.locator(MeckanoSelectors.CELL_TEXT).nth(MeckanoSelectors.CELL_TEXT_INDEX)
        shown: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                shown = self._write_and_read(cell, display, value)
            except PlaywrightError as e:
                log_warning(
                    f"    {name}: attempt {attempt}/{self.max_attempts} failed - {e}",
                    self.logger
                )
            else:
                if value in shown:
                    self.logger.debug(f"    {name}: filled '{value}' on attempt {attempt}")
                    return FillOutcome(succeeded=True, final_value=shown, attempts=attempt)

                log_warning(
                    f"    {name}: expected '{value}', got '{shown}' "
                    f"(attempt {attempt}/{self.max_attempts})",
                    self.logger
                )

            if attempt < self.max_attempts:
                self.page.wait_for_timeout(self.timing.retry_backoff)

        return FillOutcome(
            succeeded=False,
            final_value=shown or None,
            error_detail=f'Failed to fill "{value}" after {self.max_attempts} attempts',
            attempts=self.max_attempts,
        )

    def _write_and_read(self, cell: Locator, display: Locator, value: str) -> str:
        keyboard = self.page.keyboard

        cell.click()
        self.page.wait_for_timeout(self.timing.focus_delay)

        keyboard.press('ControlOrMeta+A')
        keyboard.press('Backspace')
        # Typed per character: the cell's input handlers drop fast synthetic input
        keyboard.type(value, delay=self.timing.type_delay)
        keyboard.press('Enter')
        self.page.wait_for_timeout(self.timing.commit_settle)

        display.wait_for(state='attached', timeout=self.timing.verify_timeout)
        shown = (display.inner_text() or "").strip()
        if not shown:
            self.logger.debug("    display still empty after commit, waiting once more")
            self.page.wait_for_timeout(self.timing.empty_display_wait)
            shown = (display.inner_text() or "").strip()

        return shown


class MeckanoClient:
    """
    Playwright client for interacting with the Meckano portal.
    """

    def __init__(self, config: Config, rng=None):
        """
        Initialize the client.

        Args:
            config: Application configuration
            rng: Source of randomness for generated times (defaults to ``random``)
        """
        self.config = config
        self.rng = rng if rng is not None else random
        self.logger = get_logger()
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def start(self):
        """
        Start Playwright and launch browser.
        """
        log_step("Starting browser...", self.logger)

        self.playwright = sync_playwright().start()
        self.browser = self.playwright.chromium.launch(
            headless=self.config.headless
        )

        self.context = self.browser.new_context()
        self.context.set_default_timeout(self.config.element_timeout)
        self.context.set_default_navigation_timeout(self.config.navigation_timeout)

        self.page = self.context.new_page()

        self.logger.debug(f"Browser launched (headless={self.config.headless})")

    def close(self):
        """
        Close browser and Playwright.
        """
        if self.page:
            self.page.close()
        if self.context:
            self.context.close()
        if self.browser:
            self.browser.close()
        if self.playwright:
            self.playwright.stop()

        self.logger.debug("Browser closed")

    def check_portal_reachable(self):
        """
        Request the portal once through the browser context's network stack.

        DNS, proxy and certificate problems surface here with a short hint
        instead of as a login-page timeout. Any answer below HTTP 500 counts
        as reachable (the portal may reject a bare request with 403/405).

        Raises:
            NavigationError: If no answer arrives or the server errors
        """
        url = self.config.base_url
        log_step(f"Checking that {url} answers...", self.logger)

        try:
            response = self.context.request.get(url, timeout=self.config.navigation_timeout)
        except PlaywrightError as e:
            log_error(f"Portal unreachable: {e}", self.logger)
            raise NavigationError(
                f"Could not reach {url}: {e}. Check the network connection, "
                f"VPN/proxy settings and MECKANO_BASE_URL."
            ) from e

        status = response.status
        response.dispose()

        if status >= 500:
            log_error(f"Portal answered HTTP {status}", self.logger)
            raise NavigationError(f"{url} answered HTTP {status}, the portal may be down")

        self.logger.debug(f"Portal answered HTTP {status}")

    def login(self):
        """
        Authenticate against the portal.

        Submitting a live login form repeatedly risks locking the account,
        so nothing here is retried.

        Raises:
            NavigationError: If the login page cannot be opened
            AuthenticationError: If the authenticated state is not reached
        """
        log_step(f"Opening {self.config.base_url}...", self.logger)

        try:
            self.page.goto(
                self.config.base_url,
                timeout=self.config.navigation_timeout,
                wait_until='domcontentloaded'
            )
        except PlaywrightError as e:
            log_error(f"Failed to open login page: {e}", self.logger)
            raise NavigationError(f"Could not open {self.config.base_url}: {e}") from e

        log_step("Submitting credentials...", self.logger)

        try:
            secret_field = self.page.get_by_label(MeckanoSelectors.LOGIN_SECRET_LABEL).first
            secret_field.wait_for(state='visible', timeout=self.config.element_timeout)

            self._identifier_field().fill(self.config.email)
            secret_field.fill(self.config.password)
            self.page.get_by_role('button', name=MeckanoSelectors.LOGIN_SUBMIT_NAME).click()
        except PlaywrightError as e:
            log_error(f"Login form not usable: {e}", self.logger)
            raise AuthenticationError(f"Login form not usable: {e}") from e

        self._wait_for_authentication()
        log_success("Logged in", self.logger)

    def _identifier_field(self) -> Locator:
        field = self.page.get_by_label(MeckanoSelectors.LOGIN_IDENTIFIER_LABEL)
        if field.count() == 0:
            self.logger.debug("Identifier label not found, using first textbox")
            field = self.page.get_by_role('textbox')
        return field.first

    def _wait_for_authentication(self):
        """
        Poll until the dashboard route is reached.

        If the portal asks for a confirmation code on the way, it is
        requested from the user once.

        Raises:
            AuthenticationError: If the dashboard is not reached in time or
                the page fails while waiting
        """
        self.logger.info("Waiting for login to complete (confirmation code may be requested)...")

        deadline = time.monotonic() + self.config.login_timeout / 1000
        code_requested = False

        while time.monotonic() < deadline:
            if MeckanoSelectors.DASHBOARD_URL.search(self.page.url):
                return

            try:
                code_input = self.page.locator(MeckanoSelectors.MFA_CODE_INPUT)
                if not code_requested and code_input.is_visible():
                    code_requested = True
                    self._submit_confirmation_code()

                self.page.wait_for_timeout(self.config.timing.poll_interval)
            except PlaywrightError as e:
                log_error(f"Login interrupted: {e}", self.logger)
                raise AuthenticationError(f"Login interrupted: {e}") from e

        if MeckanoSelectors.DASHBOARD_URL.search(self.page.url):
            return

        log_error("Login did not complete in time", self.logger)
        raise AuthenticationError(
            f"Not authenticated within {self.config.login_timeout // 1000}s "
            f"(still at {self.page.url})"
        )

    def _submit_confirmation_code(self):
        """
        Handle the second-factor step.

        In headful mode the user types the code in the browser window; in
        headless mode it is read from the terminal and typed for them.
        """
        self.logger.info("")
        self.logger.info("=" * 70)
        self.logger.info("  CONFIRMATION CODE REQUIRED")
        self.logger.info("=" * 70)

        if not self.config.headless:
            self.logger.info("  Please enter the code you received in the browser window.")
            self.logger.info("=" * 70)
            return

        self.logger.info("  Type the code you received and press ENTER:")
        self.logger.info("=" * 70)
        code = input().strip()

        code_input = self.page.locator(MeckanoSelectors.MFA_CODE_INPUT)
        code_input.fill(code)
        code_input.press('Enter')
        log_step("Confirmation code submitted", self.logger)

    def open_monthly_report(self):
        """
        Navigate from the dashboard to the monthly employee report.

        Raises:
            NavigationError: If the report table does not show up
        """
        log_step("Opening monthly report...", self.logger)

        try:
            self.page.get_by_text(MeckanoSelectors.DASHBOARD_READY_TEXT, exact=True).first.wait_for(
                state='visible',
                timeout=self.config.navigation_timeout
            )
            self.page.locator(MeckanoSelectors.MONTHLY_REPORT_LINK).first.click()
            self.dismiss_blocking_dialog()
            self.page.locator(MeckanoSelectors.REPORT_TABLE).first.wait_for(
                state='visible',
                timeout=self.config.element_timeout
            )
        except PlaywrightError as e:
            log_error(f"Failed to open monthly report: {e}", self.logger)
            raise NavigationError(f"Could not open the monthly report: {e}") from e

        log_success("Monthly report loaded", self.logger)

    def dismiss_blocking_dialog(self) -> bool:
        """
        Close a modal dialog covering the page, if one shows up.

        The dialog is not always present, so every failure here is only
        logged.

        Returns:
            True if a dialog was dismissed, False otherwise
        """
        timeout = self.config.timing.dialog_timeout
        dialog = self.page.locator(MeckanoSelectors.BLOCKING_DIALOG).first

        try:
            dialog.wait_for(state='visible', timeout=timeout)
        except PlaywrightError:
            self.logger.debug("No blocking dialog")
            return False

        try:
            close_button = dialog.locator(MeckanoSelectors.DIALOG_CLOSE_BUTTON).first
            if close_button.count() > 0:
                close_button.click(timeout=timeout)
            else:
                self.page.keyboard.press('Escape')
            dialog.wait_for(state='hidden', timeout=timeout)
        except PlaywrightError as e:
            self.logger.debug(f"Could not dismiss blocking dialog: {e}")
            return False

        self.logger.debug("Blocking dialog dismissed")
        return True

    def fill_monthly_report(self) -> RunSummary:
        """
        Fill every empty work-day row of the loaded monthly report.

        A row whose cell cannot be filled is counted as an error and the
        loop moves on; nothing here aborts the run.

        Returns:
            Summary of the run
        """
        summary = RunSummary()
        rows = self.page.locator(MeckanoSelectors.REPORT_ROWS)
        summary.total_rows = rows.count()
        filler = CellFiller(self.page, self.config.timing)

        self.logger.info("")
        self.logger.info(f"Found {summary.total_rows} row(s) in the monthly report")

        for row in iter_rows(rows):
            if row.is_malformed:
                self.logger.debug(f"Row {row.index}: only {row.cell_count} cell(s), skipping")
                summary.skipped += 1
                continue

            if row.is_non_workday:
                log_skip(f"Row {row.index}: {row.date_label} is a weekend day", self.logger)
                summary.skipped += 1
                continue

            entry = generate_time_entry(self.config.time, self.rng)
            self.logger.info(
                f"Row {row.index}: {row.date_label} "
                f"(entrance={entry.entrance}, exit={entry.exit})"
            )

            outcomes = self._fill_row(row, entry, filler, summary)
            if outcomes is None:
                continue

            summary.processed += 1
            if any(outcome.wrote_value for outcome in outcomes):
                summary.filled += 1
                self._wait_for_next_row(rows, row.index + 1, summary.total_rows)

        self.logger.info("")
        self.logger.info(
            f"Rows: total={summary.total_rows}, processed={summary.processed}, "
            f"filled={summary.filled}, skipped={summary.skipped}, errors={summary.errors}"
        )
        return summary

    def _fill_row(
        self,
        row: RowRecord,
        entry: TimeEntry,
        filler: CellFiller,
        summary: RunSummary
    ) -> Optional[List[FillOutcome]]:
        outcomes = []

        for name, cell, value in (
            ('entrance', row.entrance_cell, entry.entrance),
            ('exit', row.exit_cell, entry.exit),
        ):
            try:
                outcome = filler.fill(cell, value, name)
            except PlaywrightError as e:
                outcome = FillOutcome(succeeded=False, error_detail=str(e))

            if not outcome.succeeded:
                log_error(f"Row {row.index}: {name} - {outcome.error_detail}", self.logger)
                summary.record_error(row, f"{name}: {outcome.error_detail}")
                return None

            outcomes.append(outcome)

        return outcomes

    def _wait_for_next_row(self, rows: Locator, next_index: int, row_count: int):
        """Give the table time to re-render after a write before moving on."""
        timing = self.config.timing
        self.page.wait_for_timeout(timing.row_settle)

        if next_index >= row_count:
            return

        next_cell = rows.nth(next_index).locator(MeckanoSelectors.ROW_CELLS).nth(
            MeckanoSelectors.ENTRANCE_CELL_INDEX
        )
        try:
            next_cell.wait_for(state='visible', timeout=timing.next_row_timeout)
            self.page.wait_for_timeout(timing.next_row_settle)
        except PlaywrightError as e:
            self.logger.debug(f"Row {next_index} not ready, continuing anyway: {e}")


def run_fill_operation(config: Config, rng=None) -> RunSummary:
    """
    Execute the complete fill run.

    Args:
        config: Application configuration
        rng: Source of randomness for generated times

    Returns:
        Summary of the run

    Raises:
        BootstrapError: If the portal is unreachable, or login or navigation
            to the report fails
    """
    with MeckanoClient(config, rng=rng) as client:
        if config.check_connectivity:
            client.check_portal_reachable()
        client.login()
        client.open_monthly_report()
        return client.fill_monthly_report()

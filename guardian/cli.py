"""
guardian/cli.py
===============
The interactive command-line interface.

The CLI owns the collaborators (database, quote client, stock catalog) and
passes them down; the calculation modules never see any of them.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from guardian import display, exporter
from guardian.analysis import portfolio_weights, price_range, summarize
from guardian.db import GROQ_KEY, TOKEN_KEY, Database
from guardian.dcf import dcf_summary
from guardian.insights import InsightClient, InsightError
from guardian.portfolio import Portfolio, Refresher, groq_key, make_client
from guardian.quotes import QuoteError, StockCatalog
from guardian.validation import validate_fundamental, validate_position, validate_ticker

console = Console()


class CLI:
    """Main command-line interface class."""

    def __init__(self, db: Optional[Database] = None):
        self.db        = db or Database()
        self._connect()

    def _connect(self):
        """(Re)build the provider-dependent collaborators from the saved token."""
        client         = make_client(self.db)
        self.portfolio = Portfolio(self.db, client)
        self.catalog   = StockCatalog(client)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _prompt_number(self, prompt: str, default: float = 0.0) -> float:
        """Keep asking until the user enters a number."""
        while True:
            raw = Prompt.ask(prompt, default=f"{default:g}")
            try:
                return float(raw.replace(",", "."))
            except ValueError:
                console.print("[red]That doesn't look like a number. Try again.[/red]")

    def _prompt_optional(self, prompt: str) -> Optional[float]:
        """Empty answer = keep the provider's value."""
        while True:
            raw = Prompt.ask(prompt, default="").strip()
            if not raw:
                return None
            try:
                value = float(raw.replace(",", "."))
            except ValueError:
                console.print("[red]That doesn't look like a number. Try again.[/red]")
                continue
            errors = validate_fundamental(prompt, value)
            if not errors:
                return value
            for e in errors:
                console.print(f"[red]{e}[/red]")

    def _prompt_position(self, cost: float = 0.0, quantity: float = 0.0):
        while True:
            quantity = self._prompt_number("Quantity (0 = watch only)", quantity)
            cost     = self._prompt_number("Average cost per share", cost)
            errors   = validate_position(cost, quantity)
            if not errors:
                return cost, quantity
            for e in errors:
                console.print(f"[red]{e}[/red]")

    def _pick_ticker(self) -> Optional[str]:
        holdings = self.portfolio.all_holdings()
        if not holdings:
            console.print("[yellow]No stocks in the portfolio.[/yellow]")
            return None
        console.print("\nTickers: " + ", ".join(f"[cyan]{h.ticker}[/cyan]" for h in holdings))
        ticker = Prompt.ask("Enter ticker").strip().upper()
        if self.portfolio.get(ticker) is None:
            console.print(f"[red]Ticker '{ticker}' not found.[/red]")
            return None
        return ticker

    # -----------------------------------------------------------------------
    # Menu actions
    # -----------------------------------------------------------------------

    def view_portfolio(self):
        holdings = self.portfolio.all_holdings()
        display.print_portfolio_table(holdings)
        if holdings:
            display.print_summary(summarize(holdings))

    def add_stock(self):
        console.print("\n[steel_blue1]── Add Stock ──[/steel_blue1]")
        ticker = Prompt.ask("Ticker symbol (e.g. PETR4, VALE3, AAPL)").strip().upper()
        errors = validate_ticker(ticker)
        if errors:
            for e in errors:
                console.print(f"[red]{e}[/red]")
            return

        cost, quantity = self._prompt_position()
        console.print("[dim]Leave blank to use the provider's fundamentals.[/dim]")
        lpa = self._prompt_optional("EPS override")
        vpa = self._prompt_optional("Book value per share override")

        console.print("[dim]Fetching quote...[/dim]")
        try:
            holding = self.portfolio.add_stock(ticker, cost=cost, quantity=quantity,
                                               lpa=lpa, vpa=vpa)
        except QuoteError as e:
            console.print(f"[red]{e}[/red]")
            return
        console.print(f"[green]✓ {holding.ticker} added, score {holding.score}/100[/green]")

    def edit_position(self):
        ticker = self._pick_ticker()
        if ticker is None:
            return
        h = self.portfolio.get(ticker)
        cost, quantity = self._prompt_position(h.cost, h.quantity)
        self.portfolio.update_position(ticker, cost, quantity)
        console.print(f"[green]✓ Position updated for {ticker}[/green]")

    def view_holding_detail(self):
        ticker = self._pick_ticker()
        if ticker is None:
            return
        try:
            history = price_range(self.portfolio.client.fetch_history(ticker, "6mo"))
        except QuoteError as e:
            console.print(f"[yellow]Price history unavailable: {e}[/yellow]")
            history = None
        display.print_holding_detail(self.portfolio.get(ticker), history)

    def show_dcf(self):
        display.print_dcf(dcf_summary(self.portfolio.all_holdings()))

    def show_risk(self):
        holdings = self.portfolio.all_holdings()
        if not holdings:
            console.print("[yellow]No stocks to analyse.[/yellow]")
            return
        display.print_risk(summarize(holdings).risk, portfolio_weights(holdings))

    def show_insights(self):
        client = InsightClient(groq_key(self.db))
        console.print("[dim]Asking the AI analyst...[/dim]")
        try:
            report = client.fetch(self.portfolio.all_holdings())
        except InsightError as e:
            console.print(f"[red]{e}[/red]")
            return
        display.print_insights(report)

    def toggle_favorite(self):
        ticker = self._pick_ticker()
        if ticker is not None:
            self.portfolio.toggle_favorite(ticker)
            state = "added to" if self.portfolio.get(ticker).is_favorite else "removed from"
            console.print(f"[green]✓ {ticker} {state} favorites[/green]")

    def remove_stock(self):
        ticker = Prompt.ask("Enter ticker to remove").strip().upper()
        if Confirm.ask(f"[red]Remove {ticker} and its position? This cannot be undone.[/red]"):
            if self.portfolio.remove(ticker):
                console.print(f"[green]✓ {ticker} removed.[/green]")
            else:
                console.print(f"[red]'{ticker}' not found.[/red]")

    def refresh(self):
        console.print("[dim]Refreshing quotes...[/dim]")
        try:
            failed = self.portfolio.refresh_all()
        except QuoteError as e:
            console.print(f"[red]{e}[/red]")
            return
        if failed:
            console.print(f"[yellow]No quote returned for: {', '.join(failed)}[/yellow]")
        console.print("[green]✓ Quotes refreshed.[/green]")

    def watch(self):
        """Auto refresh until Ctrl+C."""
        if not self.portfolio.holdings:
            console.print("[yellow]No stocks to watch.[/yellow]")
            return
        interval = self._prompt_number("Refresh every N seconds", 60)
        console.print("[dim]Watching. Press Ctrl+C to stop.[/dim]")

        def _render(snap):
            display.print_portfolio_table(self.portfolio.all_holdings())
            display.print_summary(snap)

        Refresher(self.portfolio, interval=max(interval, 5)).run(_render)

    def search(self):
        query = Prompt.ask("Search tickers")
        matches = self.catalog.search(query)
        if not matches:
            console.print("[yellow]No matches.[/yellow]")
            return
        for o in matches:
            console.print(f"  [cyan]{o.ticker:<8}[/cyan] [grey62]{o.market:<6}[/grey62] {o.label}")

    def export_data(self):
        holdings = self.portfolio.all_holdings()
        if not holdings:
            console.print("[yellow]No stocks to export.[/yellow]")
            return
        console.print("\n  1. Export to Excel (.xlsx)")
        console.print("  2. Export to CSV")
        console.print("  3. Both")
        choice = Prompt.ask("Choose", choices=["1", "2", "3"])

        if choice in ("1", "3"):
            fname = exporter.export_to_excel(holdings)
            console.print(f"[green]✓ Excel saved: {fname}[/green]")
        if choice in ("2", "3"):
            fname = exporter.export_to_csv(holdings)
            console.print(f"[green]✓ CSV saved:   {fname}[/green]")

    def set_tokens(self):
        console.print("[dim]Leave blank to keep, type '-' to clear.[/dim]")
        for key, label in [(TOKEN_KEY, "brapi token"), (GROQ_KEY, "Groq API key")]:
            current = self.db.get_setting(key, "")
            shown   = f"{current[:4]}…" if current else "not set"
            raw     = Prompt.ask(f"{label} ({shown})", default="", password=True).strip()
            if raw == "-":
                self.db.set_setting(key, None)
            elif raw:
                self.db.set_setting(key, raw)
        self.db.export_json_backup()
        self._connect()
        console.print("[green]✓ Tokens saved.[/green]")

    # -----------------------------------------------------------------------
    # Main loop
    # -----------------------------------------------------------------------

    MENU = """
[grey39]┌─────────────────────────────────┐[/grey39]
[grey39]│[/grey39]  [steel_blue1]Stock Guardian[/steel_blue1]                  [grey39]│[/grey39]
[grey39]├─────────────────────────────────┤[/grey39]
[grey39]│[/grey39]  [white]1[/white]  [grey62]View portfolio[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]2[/white]  [grey62]Add stock[/grey62]                   [grey39]│[/grey39]
[grey39]│[/grey39]  [white]3[/white]  [grey62]Edit position[/grey62]               [grey39]│[/grey39]
[grey39]│[/grey39]  [white]4[/white]  [grey62]Stock detail[/grey62]                [grey39]│[/grey39]
[grey39]│[/grey39]  [white]5[/white]  [grey62]DCF valuation[/grey62]               [grey39]│[/grey39]
[grey39]│[/grey39]  [white]6[/white]  [grey62]Risk metrics[/grey62]                [grey39]│[/grey39]
[grey39]│[/grey39]  [white]7[/white]  [grey62]AI insights[/grey62]                 [grey39]│[/grey39]
[grey39]│[/grey39]  [white]8[/white]  [grey62]Toggle favorite[/grey62]             [grey39]│[/grey39]
[grey39]│[/grey39]  [white]9[/white]  [grey62]Remove a stock[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]r[/white]  [grey62]Refresh quotes[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]w[/white]  [grey62]Watch (auto refresh)[/grey62]        [grey39]│[/grey39]
[grey39]│[/grey39]  [white]s[/white]  [grey62]Search tickers[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]e[/white]  [grey62]Export  (Excel / CSV)[/grey62]       [grey39]│[/grey39]
[grey39]│[/grey39]  [white]t[/white]  [grey62]API tokens[/grey62]                  [grey39]│[/grey39]
[grey39]│[/grey39]  [white]q[/white]  [grey62]Quit[/grey62]                        [grey39]│[/grey39]
[grey39]└─────────────────────────────────┘[/grey39]"""

    ACTIONS = {
        "1": "view_portfolio", "2": "add_stock",     "3": "edit_position",
        "4": "view_holding_detail", "5": "show_dcf", "6": "show_risk",
        "7": "show_insights",  "8": "toggle_favorite", "9": "remove_stock",
        "r": "refresh",        "w": "watch",         "s": "search",
        "e": "export_data",    "t": "set_tokens",
    }

    def run(self):
        console.print(Panel(
            "[bold white]Stock Guardian[/bold white]  [grey62]Graham · DCF · risk for B3 and global stocks[/grey62]",
            border_style="grey39",
            padding=(0, 2),
        ))

        while True:
            console.print(self.MENU)
            choice = Prompt.ask("Choice", default="1").strip().lower()

            if choice == "q":
                console.print("[cyan]Goodbye! 👋[/cyan]")
                self.db.close()
                break
            action = self.ACTIONS.get(choice)
            if action is None:
                console.print("[red]Invalid choice. Please try again.[/red]")
                continue
            getattr(self, action)()

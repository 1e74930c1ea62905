# /interviewer/app.py
"""
Main application file for the Interviewer flashcard CLI.
Handles the Command-Line Interface (CLI), user interactions, and orchestrates
the question catalog, practice sessions and the chat assistant.
"""
import sys
import time

# Rich UI Components
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table, box

# Local module imports
from .catalog import CategoryCatalog, CategoryLoadTimeout, build_catalog
from .chat_relay import ChatRelay, RelayError
from .chat_session import ChatSession
from .config import EXPLANATION_CACHE_LIMIT, NAVIGATE_DELAY_S, console
from .explanations import ExplanationCache
from .observability import get_logger
from .practice import PracticeSession

logger = get_logger(__name__)


# --- UI & Formatting Functions ---

def display_welcome_banner():
    """Displays the application's welcome banner."""
    console.print(Panel(
        "[bold magenta]Interviewer[/bold magenta]",
        subtitle="[cyan]Practice your technical interviews[/cyan]",
        expand=False
    ))


def load_categories(catalog: CategoryCatalog) -> list:
    """Loads categories with a spinner; timeouts are reported, not raised."""
    try:
        with console.status("[bold cyan]Loading categories...[/bold cyan]", spinner="dots"):
            return catalog.load_categories_blocking()
    except CategoryLoadTimeout:
        console.print("[bold red]Loading timeout.[/bold red] [yellow]Please try again.[/yellow]")
        return []


def render_categories(categories: list):
    if not categories:
        console.print("[yellow]No categories found. Check the question bank and reload.[/yellow]")
        return

    table = Table(title="Practice Categories", border_style="blue", header_style="bold", box=box.SQUARE)
    table.add_column("", style="white")
    table.add_column("Slug", style="cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Questions", style="yellow", justify="right")
    for category in categories:
        label = "question" if category.count == 1 else "questions"
        table.add_row(category.icon, category.id, category.name, f"{category.count} {label}")
    console.print(table)


def render_card(session: PracticeSession, show_answer: bool = False):
    record = session.current()
    body = f"[bold]{record.question}[/bold]"
    if show_answer:
        body += f"\n\n[green]{record.answer}[/green]"
    subtitle = session.progress
    if record.difficulty:
        subtitle += f" | {record.difficulty}"
    console.print(Panel(body, title=session.display_name, subtitle=subtitle, border_style="cyan"))


def show_explanation(explanations: ExplanationCache, session: PracticeSession, language: str):
    record = session.current()
    try:
        with console.status("[bold cyan]Generating explanation...[/bold cyan]", spinner="dots"):
            text = explanations.explain(record.question, record.answer, language)
    except RelayError as exc:
        message = (
            "Échec du chargement de l'explication. Veuillez réessayer."
            if language == "fr"
            else "Failed to load explanation. Please try again."
        )
        console.print(f"[bold red]{message}[/bold red] [dim]({exc})[/dim]")
        return
    console.print(Panel(Markdown(text), title="Explanation", border_style="magenta"))


def handle_practice_session(catalog: CategoryCatalog, explanations: ExplanationCache, domain: str):
    """Steps through one category's cards until the user goes back."""
    with console.status("[bold cyan]Loading questions...[/bold cyan]", spinner="dots"):
        session = PracticeSession(catalog.records(), domain)
    if session.is_empty:
        console.print(f"[yellow]No questions found for this domain: {domain}[/yellow]")
        return

    logger.info("practice_session_started", domain=domain, cards=session.total)
    show_answer = False
    while True:
        render_card(session, show_answer=show_answer)
        action = Prompt.ask(
            "[bold cyan](a)nswer, (n)ext, (p)revious, (e)xplain, explain in (f)rench, (b)ack[/bold cyan]",
            choices=["a", "n", "p", "e", "f", "b"],
            default="a" if not show_answer else "n",
        )
        if action == "b":
            break
        if action == "a":
            show_answer = True
        elif action == "n":
            session.advance()
            show_answer = False
        elif action == "p":
            session.retreat()
            show_answer = False
        elif action in ("e", "f"):
            show_explanation(explanations, session, "fr" if action == "f" else "en")


def handle_chat_session(catalog: CategoryCatalog, relay: ChatRelay, explanations: ExplanationCache):
    """Chat loop; a navigation directive opens the requested practice category."""
    chat = ChatSession(relay, load_categories(catalog))
    console.print(Panel(chat.messages[0]["content"], title="Interview Assistant", border_style="green"))
    while True:
        text = Prompt.ask("[bold cyan]You (or type 'back' to go back to the menu)[/bold cyan]")
        if text.strip().lower() == "back":
            break
        with console.status("[bold cyan]Thinking...[/bold cyan]", spinner="dots"):
            reply = chat.send(text)
        if reply is None:
            continue
        console.print(Panel(Markdown(reply.display_text or "..."), title="Assistant", border_style="green"))
        if reply.navigation is not None:
            time.sleep(NAVIGATE_DELAY_S)
            logger.info("chat_navigation", target=reply.navigation.target_slug)
            handle_practice_session(catalog, explanations, reply.navigation.target_slug)


def main():
    """Main application loop."""
    display_welcome_banner()
    catalog = build_catalog()
    relay = ChatRelay()
    explanations = ExplanationCache(relay, max_size=EXPLANATION_CACHE_LIMIT)

    while True:
        try:
            console.print("\n[bold]Main Menu:[/bold]")
            console.print("[green]1. List Categories[/green]")
            console.print("[cyan]2. Practice a Category[/cyan]")
            console.print("[blue]3. Chat with the Assistant[/blue]")
            console.print("[red]4. Exit[/red]")

            choice = Prompt.ask("Choose an option", choices=["1", "2", "3", "4"])

            if choice == "1":
                render_categories(load_categories(catalog))
            elif choice == "2":
                categories = load_categories(catalog)
                render_categories(categories)
                if categories:
                    domain = Prompt.ask("Enter a category slug", choices=[c.id for c in categories])
                    handle_practice_session(catalog, explanations, domain)
            elif choice == "3":
                handle_chat_session(catalog, relay, explanations)
            elif choice == "4":
                break
        except KeyboardInterrupt:
            break

    console.print("\n[bold magenta]Goodbye! Good luck with your interviews.[/bold magenta]")
    sys.exit(0)

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Storyboard CLI for day-to-day operations."""

import argparse

import questionary
from rich.console import Console
from rich.table import Table

from storyboard.config import Config
from storyboard.errors import StoryboardError
from storyboard.models import CreateCriteriaRequest, CreateStoryRequest
from storyboard.story.service import StoryService

console = Console()

DEMO_STORY_NUMBER = "105"

DEMO_STORY = {
    "title": "Quick Product Filtering",
    "description": (
        "As a frequent shopper, I want to filter search results by price, brand, and "
        "customer rating so that I can quickly find the best product for me without "
        "scrolling through pages of irrelevant items."
    ),
    "persona": "Frequent Shopper",
}

DEMO_CRITERIA = [
    "Given I am on the search results page for a product, I see filter options for "
    "Price, Brand, and Average Rating.",
    "When I set a minimum and maximum price, only products within that price range are shown.",
    "When I select one or more specific brands, only products from those brands are shown.",
    "When I select a minimum star rating (e.g., 4 stars and up), only products with an "
    "average rating equal to or greater than that value are shown.",
    "I can combine multiple filters (e.g., Brand 'Nike' AND Price '$50-$100' AND Rating "
    "'4+ stars') and the results update accordingly.",
    "If no products match the selected filters, a clear message is displayed: "
    "'No products found. Try adjusting your filters.'",
]


def criteria_ids(settings: Config, story_id: str, count: int) -> list[str]:
    """IDs for a story's first ``count`` criteria, e.g. AC-105-1 for US-105."""
    suffix = story_id.removeprefix(settings.story_id_prefix)
    return [f"{settings.criteria_id_prefix}{suffix}-{n}" for n in range(1, count + 1)]


def select_story(service: StoryService) -> dict | None:
    """Prompt the user to select a user story."""
    stories = service.get_all()
    if not stories:
        console.print("[red]No user stories found.[/]")
        return None
    return questionary.select(
        "Select a user story:",
        choices=[questionary.Choice(title=f"{s['id']} {s['title']}", value=s) for s in stories],
    ).ask()


def show_statistics(service: StoryService):
    """Print counts of stories and criteria."""
    stats = service.get_statistics()
    console.print(f"User stories: [bold]{stats['total_stories']}[/]")
    console.print(f"Acceptance criteria: [bold]{stats['total_criteria']}[/]")
    console.print(f"Average criteria per story: {stats['avg_criteria_per_story']:.2f}")

    table = Table(title="Stories by persona")
    table.add_column("Persona")
    table.add_column("Stories", justify="right")
    for persona, count in stats["stories_by_persona"].items():
        table.add_row(persona, str(count))
    console.print(table)


def list_stories(service: StoryService):
    """Print all user stories."""
    table = Table(title="User stories")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Persona")
    table.add_column("Created")
    for story in service.get_all():
        table.add_row(story["id"], story["title"], story["persona"], f"{story['created_at']:%Y-%m-%d %H:%M}")
    console.print(table)


def show_story(service: StoryService):
    """Print a selected story with its acceptance criteria."""
    selected = select_story(service)
    if not selected:
        return

    story = service.get_with_criteria(selected["id"])
    if story is None:
        console.print(f"[red]User story {selected['id']} no longer exists.[/]")
        return

    console.print(f"[bold]{story['id']}[/] {story['title']} [dim]({story['persona']})[/]")
    console.print(story["description"])
    for criteria in story["acceptance_criteria"]:
        console.print(f"  [green]{criteria['id']}[/] {criteria['description']}")


def create_story(service: StoryService):
    """Interactively create a user story."""
    answers = questionary.form(
        id=questionary.text("ID:", default=service.config.story_id_prefix),
        title=questionary.text("Title:"),
        persona=questionary.text("Persona:"),
        description=questionary.text("Description:"),
    ).ask()
    if not answers:
        console.print("[dim]Cancelled.[/]")
        return

    story = service.create(CreateStoryRequest(**answers))
    console.print(f"[green]Created {story['id']}.[/]")


def delete_story(service: StoryService):
    """Delete a selected story after confirmation."""
    story = select_story(service)
    if not story:
        return

    count = service.criteria.count_by_user_story_id(story["id"])
    console.print(
        f"[yellow]Will delete [bold]{story['id']}[/] and its {count} acceptance criteria.[/]"
    )
    if not questionary.confirm("Proceed with these changes?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    service.delete(story["id"])
    console.print(f"[green]Deleted {story['id']}.[/]")


def seed(service: StoryService):
    """Create the demo story with its acceptance criteria."""
    story_id = f"{service.config.story_id_prefix}{DEMO_STORY_NUMBER}"
    if service.get_by_id(story_id):
        console.print(f"Skipping {story_id} - already exists")
        return

    ids = criteria_ids(service.config, story_id, len(DEMO_CRITERIA))
    criteria = [
        CreateCriteriaRequest(id=criteria_id, user_story_id=story_id, description=text)
        for criteria_id, text in zip(ids, DEMO_CRITERIA)
    ]
    result = service.create_with_criteria(CreateStoryRequest(id=story_id, **DEMO_STORY), criteria)
    console.print(
        f"Created: {result['id']} with {len(result['acceptance_criteria'])} acceptance criteria"
    )


def serve(host: str, port: int):
    """Run the HTTP tool endpoint."""
    from storyboard.app import create_app

    create_app().run(host=host, port=port)


def main():
    parser = argparse.ArgumentParser(description="Storyboard CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show story and criteria statistics")
    subparsers.add_parser("list", help="List user stories")
    subparsers.add_parser("show", help="Show a user story with its acceptance criteria")
    subparsers.add_parser("create", help="Create a user story")
    subparsers.add_parser("delete", help="Delete a user story")
    subparsers.add_parser("seed", help="Create demo data")
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP tool endpoint")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=5000)

    args = parser.parse_args()

    from storyboard.app import configure_logging

    configure_logging()
    service = StoryService()

    commands = {
        "stats": show_statistics,
        "list": list_stories,
        "show": show_story,
        "create": create_story,
        "delete": delete_story,
        "seed": seed,
    }

    try:
        if args.command == "serve":
            serve(args.host, args.port)
        else:
            commands[args.command](service)
    except StoryboardError as e:
        console.print(f"[red]{e.kind}: {e.message}[/]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

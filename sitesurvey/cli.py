"""Command-line interface for sitesurvey."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from sitesurvey.aggregator import BomTotals, group_by_brand
from sitesurvey.exceptions import SurveyError
from sitesurvey.logging import get_logger, set_global_log_level
from sitesurvey.report import item_location
from sitesurvey.survey import SiteSurvey
from sitesurvey.tree import building_totals

logger = get_logger(__name__)


def _format_table(headers: List[str], rows: List[List[Any]], min_width: int = 6) -> str:
    """Format rows as a simple ASCII table indented by three spaces."""
    if not rows:
        return ""
    cells = [[str(h) for h in headers]] + [[str(c) for c in row] for row in rows]
    widths = [
        max(min_width, max(len(row[i]) for row in cells)) for i in range(len(headers))
    ]

    def format_row(row: List[str]) -> str:
        return "   " + " | ".join(f"{item:<{widths[i]}}" for i, item in enumerate(row))

    lines = [format_row(cells[0]), "   " + "-+-".join("-" * w for w in widths)]
    lines.extend(format_row(row) for row in cells[1:])
    return "\n".join(lines)


def _format_money(value: float) -> str:
    """Return ``value`` with thousands separators and two decimals."""
    return f"{value:,.2f}"


def _load(path: Path) -> SiteSurvey:
    text = path.read_text(encoding="utf-8")
    survey = SiteSurvey.from_yaml(text)
    logger.debug(f"Loaded survey from: {path}")
    return survey


def _print_header(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def _totals_row(label: str, totals: BomTotals) -> List[str]:
    return [
        label,
        str(totals.count),
        str(totals.units),
        _format_money(totals.subtotal),
        _format_money(totals.total_margin),
        _format_money(totals.total),
    ]


def _inspect(survey: SiteSurvey) -> None:
    stats = survey.stats()
    _print_header("SITE SURVEY INSPECTION")
    if survey.name:
        print(f"   Name: {survey.name}")
    print(f"   Buildings: {stats.buildings}")
    print(f"   Floors: {stats.floors}")
    print(f"   Rooms: {stats.rooms}")
    print(f"   Outlets: {stats.outlets}")
    print(f"   Racks: {stats.racks}")
    print(f"   Devices: {stats.devices}")
    print(f"   Cable terminations: {stats.cable_terminations}")
    print(
        f"   Fiber strands: {stats.terminated_fiber_strands}/{stats.fiber_strands}"
        f" terminated ({stats.percent_fiber_terminated:.1f}%)"
    )
    print(f"   Building connections: {len(survey.tree.connections)}")
    print(f"   Equipment items: {len(survey.ledger)}")

    if survey.tree.buildings:
        print("\n   Buildings:")
        rows = []
        for building in survey.tree.buildings:
            b = building_totals(building)
            rows.append(
                [
                    building.name,
                    building.code or "-",
                    b.floors,
                    b.rooms,
                    b.outlets,
                    b.racks,
                    b.devices,
                ]
            )
        print(
            _format_table(
                ["Name", "Code", "Floors", "Rooms", "Outlets", "Racks", "Devices"], rows
            )
        )

    dangling = survey.dangling_items()
    if dangling:
        print(f"\n   Warning: {len(dangling)} equipment item(s) bound to missing elements")


def _bom(survey: SiteSurvey, as_json: bool) -> None:
    if as_json:
        report = survey.report()
        print(
            json.dumps(
                {
                    "products": report["products"],
                    "services": report["services"],
                    "totals": report["totals"],
                },
                indent=2,
            )
        )
        return

    summary = survey.summary()
    _print_header("BILL OF MATERIALS")
    headers = ["Name", "Qty", "Unit price", "Margin %", "Total", "Location"]
    products = survey.ledger.products
    if products:
        for brand, items in group_by_brand(products).items():
            print(f"\n   Products - {brand}:")
            rows = [
                [
                    item.name,
                    item.quantity,
                    _format_money(item.price),
                    f"{item.margin:g}",
                    _format_money(item.total_price),
                    item_location(survey.tree, item),
                ]
                for item in items
            ]
            print(_format_table(headers, rows))
    services = survey.ledger.services
    if services:
        print("\n   Services:")
        rows = [
            [
                item.name,
                item.quantity,
                _format_money(item.price),
                f"{item.margin:g}",
                _format_money(item.total_price),
                item_location(survey.tree, item),
            ]
            for item in services
        ]
        print(_format_table(headers, rows))

    print("\n   Totals:")
    print(
        _format_table(
            ["Group", "Items", "Units", "Subtotal", "Margin", "Total"],
            [
                _totals_row("Products", summary.products),
                _totals_row("Services", summary.services),
                _totals_row("Grand total", summary.grand),
            ],
        )
    )


def _diagram(survey: SiteSurvey, output: Optional[Path]) -> None:
    graph = survey.diagram()
    json_str = json.dumps(graph.to_dict(), indent=2)
    if output is None:
        print(json_str)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json_str, encoding="utf-8")
    logger.info(f"Wrote diagram with {len(graph.nodes)} nodes to: {output}")
    print(f"Diagram written to: {output}")


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``sitesurvey`` command.

    Args:
        argv: Optional list of command-line arguments. If ``None``, ``sys.argv``
            is used.
    """
    parser = argparse.ArgumentParser(
        prog="sitesurvey",
        description="Inspect site surveys, their bill of materials and diagrams.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        title="Available commands",
        metavar="{inspect,bom,diagram}",
        help="Available commands",
    )

    inspect_parser = subparsers.add_parser(
        "inspect", help="Validate a survey file and show its counts"
    )
    bom_parser = subparsers.add_parser("bom", help="Print the bill of materials")
    bom_parser.add_argument(
        "--json", action="store_true", help="Print products, services and totals as JSON"
    )
    diagram_parser = subparsers.add_parser(
        "diagram", help="Export the infrastructure diagram as node/edge JSON"
    )
    diagram_parser.add_argument(
        "--output", "-o", type=Path, default=None, help="Write JSON to this file"
    )
    for p in (inspect_parser, bom_parser, diagram_parser):
        p.add_argument("survey", type=Path, help="Path to survey YAML or JSON")

    effective_args = sys.argv[1:] if argv is None else argv
    if not effective_args:
        parser.print_help()
        raise SystemExit(0)

    args = parser.parse_args(effective_args)

    if args.verbose:
        set_global_log_level(logging.DEBUG)
        logger.debug("Debug logging enabled")
    elif args.quiet:
        set_global_log_level(logging.WARNING)
    else:
        set_global_log_level(logging.INFO)

    try:
        survey = _load(args.survey)
        if args.command == "inspect":
            _inspect(survey)
        elif args.command == "bom":
            _bom(survey, args.json)
        elif args.command == "diagram":
            _diagram(survey, args.output)
    except FileNotFoundError:
        logger.error(f"Survey file not found: {args.survey}")
        print(f"ERROR: Survey file not found: {args.survey}")
        sys.exit(1)
    except (SurveyError, ValueError) as e:
        logger.error(f"Invalid survey: {e}")
        print(f"ERROR: Invalid survey: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

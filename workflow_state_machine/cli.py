#!/usr/bin/env python3
"""
Command-line interface for the workflow state machine
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from .approval import create_document, define_state_machine, run_rejection, run_state_machine, Notifier
from .exceptions import StateMachineError, describe
from .graph import FORMATS, export_graph
from .parser import DefinitionParser


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Run the document approval workflow and print its transition graph"
    )

    parser.add_argument(
        "-f", "--format",
        choices=FORMATS,
        default="dot",
        help="Graph format (default: %(default)s)"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Write the graph to this file instead of stdout"
    )

    parser.add_argument(
        "--graph-only",
        action="store_true",
        help="Print the graph without running the workflow"
    )

    parser.add_argument(
        "--reject",
        action="store_true",
        help="Reject the document during internal approval"
    )

    parser.add_argument(
        "-d", "--definition",
        type=Path,
        help="Export the graph of a YAML machine definition instead"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if args.definition:
            print(f"Loading machine definition: {args.definition}")
            definition = DefinitionParser.from_file(args.definition)
            graph = export_graph(definition.to_table(), name=definition.name, format=args.format)
        else:
            document = create_document()
            notifier = Notifier(sink=print)
            sm = define_state_machine(document, notifier)

            if not args.graph_only:
                if args.reject:
                    run_rejection(sm, document)
                else:
                    run_state_machine(sm, document)
                print(f"Final state: {describe(document.status)}")
                print()

            graph = sm.to_graph(format=args.format)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)

    except (StateMachineError, yaml.YAMLError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(graph + "\n")
        print(f"Graph written to {args.output}")
    else:
        print(graph)

    return 0


if __name__ == "__main__":
    sys.exit(main())

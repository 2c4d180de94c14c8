"""
Main entry point for intentflow
Runs an Intent Spec against a live browser, or generates one from a recording
"""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from intentflow.ai import AIAgent
from intentflow.analysis import AnalysisRetryController, GroqIntentSpecGenerator
from intentflow.config import ExecutionSettings
from intentflow.errors import IntentFlowError, StepFailure
from intentflow.models import IntentSpec
from intentflow.navigator import Navigator
from intentflow.runner import FlowRunner
from intentflow.validator import validate_intent_spec

load_dotenv()


def parse_bindings(pairs) -> dict:
    """KEY=VALUE pairs from --var into a bindings dict"""
    bindings = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Invalid --var \"{pair}\", expected KEY=VALUE")
        key, value = pair.split("=", 1)
        bindings[key.strip()] = value
    return bindings


def load_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def run_flow(args) -> int:
    document = load_json(args.spec)
    validation = validate_intent_spec(document)
    for warning in validation.warnings:
        print(f"⚠️  {warning}")
    if not validation.valid:
        print("❌ Invalid Intent Spec:")
        for error in validation.errors:
            print(f"   - {error}")
        return 1

    spec = IntentSpec.from_dict(document)
    settings = ExecutionSettings(capture_screenshots=args.screenshots)
    if args.allow_raw_snippets:
        settings.allow_raw_snippets = True

    navigator = Navigator()
    page = await navigator.initialize()
    try:
        runner = FlowRunner(page, AIAgent(), settings=settings)
        result = await runner.execute_flow(spec, parse_bindings(args.var))
    finally:
        await navigator.close()

    print("\n" + "=" * 60)
    print("📊 Flow Execution Summary")
    print("=" * 60)
    print(f"Flow: {spec.name}")
    print(f"Success: {result.success}")
    print(f"Completed: {result.stats['completedSteps']}/{result.stats['totalSteps']} "
          f"(skipped {result.stats['skippedSteps']})")
    for error in result.errors:
        print(f"❌ {error['stepName']}: {error['error']}")
    for recommendation in result.recommendations:
        print(f"💡 {recommendation}")
    print("=" * 60 + "\n")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"💾 Result saved to {args.output}")

    if result.errors:
        first = result.errors[0]
        raise StepFailure(first["stepName"], first["error"], first.get("executionMethod") or "")
    return 0


async def analyze(args) -> int:
    controller = AnalysisRetryController(GroqIntentSpecGenerator())
    spec = await controller.analyze_recording(load_json(args.recording))
    output = json.dumps(spec.to_dict(), indent=2)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"💾 Intent Spec saved to {args.output}")
    else:
        print(output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay Intent Specs in the browser")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run an Intent Spec")
    run_parser.add_argument("spec", help="Path to the Intent Spec JSON file")
    run_parser.add_argument("--var", action="append", metavar="KEY=VALUE", help="Parameter binding (repeatable)")
    run_parser.add_argument("--output", help="Write the flow result JSON here")
    run_parser.add_argument("--screenshots", action="store_true", help="Capture evidence screenshots")
    run_parser.add_argument("--allow-raw-snippets", action="store_true",
                            help="Evaluate unrecognized snippets as page expressions")

    analyze_parser = subparsers.add_parser("analyze", help="Generate an Intent Spec from a recording")
    analyze_parser.add_argument("recording", help="Path to the recording JSON file")
    analyze_parser.add_argument("--output", help="Write the Intent Spec JSON here")
    return parser


async def main():
    """Main function to run the CLI"""
    args = build_parser().parse_args()

    try:
        if args.command == "run":
            code = await run_flow(args)
        else:
            code = await analyze(args)
    except (IntentFlowError, ValueError, OSError) as error:
        print(f"\n❌ {error}")
        code = 1
    sys.exit(code)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()

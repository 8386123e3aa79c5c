"""
ScriptFlow Main Entry Point

Headless commands for generating, matching and scoring.
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path
from typing import Optional

from scriptflow.core.logging_config import setup_logging, get_logger, LogLevel
from scriptflow.core.config import DEFAULT_CONFIG_PATH, load_config
from scriptflow.core.exceptions import ScriptFlowError


def main():
    """Main entry point for the ScriptFlow command line."""
    parser = argparse.ArgumentParser(
        prog="scriptflow",
        description="ScriptFlow - incremental script-to-shot generation"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate script data and shots from a script file")
    generate.add_argument("script", type=str, help="Path to the raw script text")
    generate.add_argument("--output", "-o", type=str, help="Write state JSON here (default: stdout)")
    generate.add_argument("--previous", type=str, help="State JSON from an earlier run, for incremental regeneration")
    generate.add_argument("--library", type=str, help="Asset library JSON to match the result against")
    generate.add_argument("--checkpoint-dir", type=str, help="Directory for resumable checkpoints")
    generate.add_argument("--session", type=str, default="default", help="Session id (default: default)")
    generate.add_argument("--title", type=str, default="", help="Project title")
    generate.add_argument("--language", type=str, help="Output language")
    generate.add_argument("--duration", type=str, help="Target duration, e.g. 60s or 2m")
    generate.add_argument("--style", type=str, help="Visual style")
    generate.add_argument("--model", type=str, help="Chat model id")

    match = subparsers.add_parser("match", help="Match a state's entities against an asset library")
    match.add_argument("state", type=str, help="State JSON")
    match.add_argument("library", type=str, help="Asset library JSON")

    score = subparsers.add_parser("score", help="Grade every shot of a state for production readiness")
    score.add_argument("state", type=str, help="State JSON")
    score.add_argument("--llm", action="store_true", help="Use model-backed scoring (falls back to rules)")

    args = parser.parse_args()

    log_level = _log_level(args)
    setup_logging(level=log_level, verbose=args.verbose)

    logger = get_logger("main")

    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    try:
        config = load_config(config_path)
    except ScriptFlowError as e:
        logger.error(f"Could not load config: {e}")
        sys.exit(2)

    configure_logging(args, config)

    commands = {
        "generate": run_generate,
        "match": run_match,
        "score": run_score,
    }
    try:
        exit_code = asyncio.run(commands[args.command](args, config))
    except ScriptFlowError as e:
        logger.error(str(e))
        exit_code = 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        exit_code = 130
    sys.exit(exit_code)


def _log_level(args) -> LogLevel:
    if args.debug:
        return LogLevel.DEBUG
    if args.verbose:
        return LogLevel.INFO
    return LogLevel.WARNING


def configure_logging(args, config) -> Optional[Path]:
    """
    Re-apply logging once the config is known.

    ``config.logs_dir`` adds a ``scriptflow.log`` file next to the console
    output and ``config.verbose_logging`` switches to the verbose format.

    Returns:
        Path of the log file, or None when file logging is off
    """
    log_file = Path(config.logs_dir) / "scriptflow.log" if config.logs_dir else None
    setup_logging(
        level=_log_level(args),
        log_file=log_file,
        verbose=args.verbose or config.verbose_logging,
    )
    return log_file


def _read_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _emit(data: dict, output: str = None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        print(text)


def _load_state(path: str):
    from scriptflow.core.models import ScriptData, Shot

    state = _read_json(path)
    script_data = ScriptData.from_dict(state.get("script_data") or {})
    shots = [Shot.from_dict(s) for s in state.get("shots") or [] if isinstance(s, dict)]
    return script_data, shots


async def run_generate(args, config) -> int:
    """Run the staged generation for one script file."""
    from scriptflow.core.checkpoint_manager import InMemoryCheckpointStore, JsonCheckpointStore
    from scriptflow.core.models import AssetLibrary, GenerationDraft
    from scriptflow.llm.api_client import OpenAICompatibleClient
    from scriptflow.llm.stage_generator import LLMStageGenerator
    from scriptflow.pipelines.stage_orchestrator import StageOrchestrator

    logger = get_logger("main")

    draft = GenerationDraft(
        script=Path(args.script).read_text(encoding="utf-8"),
        title=args.title,
        language=args.language or config.pipeline.default_language,
        target_duration=args.duration or config.pipeline.default_target_duration,
        visual_style=args.style or config.pipeline.default_visual_style,
        model=args.model or config.llm.model,
    )

    previous, previous_shots = (None, None)
    if args.previous:
        previous, previous_shots = _load_state(args.previous)

    library = AssetLibrary.from_dict(_read_json(args.library)) if args.library else None

    checkpoint_dir = args.checkpoint_dir or config.pipeline.checkpoint_dir
    store = JsonCheckpointStore(checkpoint_dir) if checkpoint_dir else InMemoryCheckpointStore()

    client = OpenAICompatibleClient(config.llm)
    orchestrator = StageOrchestrator(LLMStageGenerator(client, config), store, config)
    result = await orchestrator.generate(
        draft,
        previous=previous,
        previous_shots=previous_shots,
        session_id=args.session,
        library=library,
    )

    if not result.success:
        logger.error(result.error)
        if result.metadata.get("resumable"):
            print(f"{result.error}\nRe-run the same command to resume from '{result.metadata.get('resume_step')}'.")
        return 1

    if result.output.skipped:
        logger.info(result.metadata.get("message", ""))
    _emit(result.output.to_dict(), args.output)
    return 0


async def run_match(args, config) -> int:
    """Print the library match report for a state."""
    from scriptflow.assets.asset_matcher import AssetMatcher
    from scriptflow.core.models import AssetLibrary

    script_data, _ = _load_state(args.state)
    library = AssetLibrary.from_dict(_read_json(args.library))
    matches = AssetMatcher(config.matching).find_matches(script_data, library)
    _emit(matches.to_dict())
    return 0


async def run_score(args, config) -> int:
    """Print a quality assessment per shot."""
    from scriptflow.quality.llm_scorer import LLMQualityScorer
    from scriptflow.quality.rule_scorer import assess_shot_quality, project_average_quality_score

    script_data, shots = _load_state(args.state)

    if args.llm:
        from scriptflow.llm.api_client import OpenAICompatibleClient
        scorer = LLMQualityScorer(OpenAICompatibleClient(config.llm), config.quality)
        for shot in shots:
            shot.quality_assessment = await scorer.assess(shot, script_data)
    else:
        for shot in shots:
            shot.quality_assessment = assess_shot_quality(shot, script_data, config.quality.weights)

    _emit({
        "average_score": project_average_quality_score(shots),
        "shots": {shot.id: shot.quality_assessment.to_dict() for shot in shots},
    })
    return 0


if __name__ == "__main__":
    main()

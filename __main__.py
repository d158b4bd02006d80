"""CLI entry point for visual-explainer-mcp.

This module acts as the central entry point for the project's CLI tools.
It delegates commands to the appropriate submodules or runs specific tasks.
"""

import argparse
import asyncio
import json
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.config import EnvVar, get_available_llm_providers, get_environment
from src.core import PipelineError, get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")


def _read_text(source: str) -> str:
    """Read a file path, or stdin for "-"."""
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _write_result(text: str, output: Path | None) -> None:
    if output:
        output.write_text(text, encoding="utf-8")
        logger.info(f"Saved to {output}")
    else:
        print(text)


def _load_compiled_input(source: str):
    """Load and validate a compiled input JSON file."""
    from src.schema import validate_compiled_input

    try:
        data = json.loads(_read_text(source))
    except json.JSONDecodeError as e:
        logger.error(f"{source} is not valid JSON: {e}")
        return None

    result = validate_compiled_input(data)
    if not result.ok:
        logger.error(f"{source} is not a valid compiled input:")
        for error in result.errors:
            logger.error(f"  {error}")
        return None
    return result.value


# =============================================================================
# Compile Command
# =============================================================================


def cmd_compile(args: argparse.Namespace) -> int:
    """Compile an abstract into schema-valid input."""
    from src.llm import (
        CompilationMetadata,
        CompilerConfig,
        LLMModel,
        SummaryCompiler,
        build_fallback_input,
        create_llm_backend,
    )

    raw_text = _read_text(args.source)

    if args.fallback:
        if not args.title or not args.source_id:
            logger.error("--fallback needs --title and --source-id")
            return 1
        compiled = build_fallback_input(
            args.title, raw_text, args.tier, args.source_id, tags=args.tags
        )
        _write_result(compiled.model_dump_json(indent=2), args.output)
        return 0

    backend = None
    if args.model:
        model = LLMModel.by_name(args.model)
        if model is None:
            logger.error(f"Unknown model: {args.model}")
            logger.info("Run 'python . models' to list available models")
            return 1
        backend = create_llm_backend(model, api_key=args.api_key)

    config = CompilerConfig.from_environment()
    config.max_attempts = args.attempts or config.max_attempts
    config.two_pass = args.two_pass or config.two_pass

    compiler = SummaryCompiler(backend=backend, config=config)
    metadata = CompilationMetadata(
        source_id=args.source_id, audience_tier=args.tier, tags=args.tags
    )
    result = asyncio.run(compiler.compile(raw_text, metadata))

    logger.info(
        f"Stats: {result.attempts} attempt(s), {result.llm_calls} model call(s), "
        f"{result.total_tokens} tokens"
    )
    if not result.success:
        logger.error("Compilation failed:")
        for error in result.errors:
            logger.error(f"  {error}")
        return 1

    _write_result(result.data.model_dump_json(indent=2), args.output)
    return 0


# =============================================================================
# Layout Command
# =============================================================================


def cmd_layout(args: argparse.Namespace) -> int:
    """Show the layout chosen for a concept count and tier."""
    from src.layout import LayoutEngine, format_percent, position_label

    engine = LayoutEngine()
    try:
        layout = engine.layout(args.count, args.tier, args.tags)
    except PipelineError as e:
        logger.error(str(e))
        return 1

    if args.json:
        print(layout.model_dump_json(indent=2))
        return 0

    recommendation = engine.recommendations(args.count, args.tier, args.tags)
    print(f"Layout: {layout.type.value}")
    print(f"Reason: {recommendation.reasoning}")
    print("\nSections:")
    for section in layout.sections:
        overlay = " (overlay)" if section.overlay else ""
        print(
            f"  {section.role.value:<12} {position_label(section):<16} "
            f"{format_percent(section.height_share):>8}{overlay}"
        )

    for warning in engine.validate(layout).warnings:
        logger.warning(warning)

    if args.alternatives:
        print("\nAlternatives:")
        alternatives = engine.alternatives(args.count, args.tier, args.tags)
        for layout_type, alternative in alternatives.items():
            print(f"  {layout_type.value}: {len(alternative.sections)} sections")
    return 0


# =============================================================================
# Prompt Command
# =============================================================================


def cmd_prompt(args: argparse.Namespace) -> int:
    """Build the structured prompt for a compiled input file."""
    from src.layout import compute_layout
    from src.prompt import (
        build_structured_prompt,
        estimate_generation_time,
        validate_structured_prompt,
    )

    compiled = _load_compiled_input(args.source)
    if compiled is None:
        return 1

    try:
        layout = compute_layout(
            len(compiled.summary.concepts), compiled.audience_tier, compiled.tags
        )
        prompt = build_structured_prompt(compiled, layout)
    except PipelineError as e:
        logger.error(str(e))
        return 1

    validation = validate_structured_prompt(prompt)
    for error in validation.errors:
        logger.error(error)
    for warning in validation.warnings:
        logger.warning(warning)

    _write_result(json.dumps(prompt.to_service_payload(), indent=2), args.output)
    logger.info(f"Estimated generation time: {estimate_generation_time(prompt)}s")
    return 0 if validation.valid else 1


# =============================================================================
# Generate Command
# =============================================================================


async def _generate(args: argparse.Namespace, compiled) -> int:
    from src.config import get_output_dir, get_trace_dir
    from src.generation import GenerationClient, GenerationClientConfig
    from src.orchestrator import PosterOrchestrator
    from src.trace import create_trace_store

    config = GenerationClientConfig.from_environment(api_key=args.api_key)
    async with GenerationClient(config) as client:
        orchestrator = PosterOrchestrator(
            client,
            trace_store=create_trace_store(get_trace_dir()),
            on_status=lambda rid, status: logger.info(f"[{rid}] {status.value}"),
            output_dir=get_output_dir(args.output_dir),
        )
        if args.tier:
            output = await orchestrator.regenerate(compiled, args.tier, seed=args.seed)
        else:
            output = await orchestrator.generate(compiled, seed=args.seed)

    if not output.success:
        logger.error(output.error)
        return 1

    print(output.result_url)
    if output.local_path:
        logger.info(f"Saved image to {output.local_path}")
    logger.info(
        f"Done in {output.metadata.generation_time_ms}ms "
        f"(seed {output.metadata.seed}, layout {output.metadata.layout_type})"
    )
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate a poster image from a compiled input file."""
    compiled = _load_compiled_input(args.source)
    if compiled is None:
        return 1
    try:
        return asyncio.run(_generate(args, compiled))
    except (PipelineError, ValueError) as e:
        logger.error(str(e))
        return 1


# =============================================================================
# Run Command (full pipeline)
# =============================================================================


async def _run(args: argparse.Namespace) -> int:
    from src.service import RequestService, RequestStatus

    service = RequestService.from_environment()
    mode = "fallback" if args.fallback else "compiler"
    record = await service.create_request(
        args.query, args.tier, summary_mode=mode, run=False
    )
    await service.run_pipeline(record.request_id)

    print(json.dumps(record.to_dict(), indent=2))
    return 0 if record.status == RequestStatus.COMPLETE else 1


def cmd_run(args: argparse.Namespace) -> int:
    """Run lookup, summary and generation for a query."""
    try:
        return asyncio.run(_run(args))
    except (PipelineError, ValueError) as e:
        logger.error(str(e))
        return 1


# =============================================================================
# Models Command
# =============================================================================


def cmd_models(_args: argparse.Namespace) -> int:
    """List available LLM models."""
    from src.llm import LLMModel, LLMProviderType

    available = get_available_llm_providers()
    logger.info(f"Configured providers: {', '.join(available) or 'none'}")
    logger.info(f"LLM_MODEL: {get_environment(EnvVar.LLM_MODEL)}")
    logger.info("Available LLM Models:")
    for provider in LLMProviderType:
        models = LLMModel.list_by_provider(provider)
        if models:
            logger.info(f"\n  {provider.value}:")
            for model in models:
                logger.info(f"    {model.spec.name:<24} {model.spec.description}")
    return 0


# =============================================================================
# Test Command
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . test                # Run all tests
        python . test --unit         # Run only unit tests (fast, no dependencies)
        python . test --integration  # Run tests that call real services
        python . test -k "layout"    # Run tests matching pattern

    Test Tiers:
        unit        - Fast tests with no I/O or external dependencies
        integration - Tests requiring network or external APIs
        llm         - Tests requiring an LLM API key
        fibo        - Tests requiring an image service key
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration"],
        "--llm": ["-m", "llm"],
        "--fibo": ["-m", "fibo"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []

    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


# =============================================================================
# MCP Command
# =============================================================================


def handle_mcp_command(argv: list[str]) -> int:
    """Handle MCP server commands.

    Usage:
        python . mcp run              # Start in STDIO mode (for Claude Desktop)
        python . mcp serve            # Start in HTTP mode
        python . mcp serve --port 8080
        python . mcp info             # Show server info
    """
    parser = argparse.ArgumentParser(
        prog="python . mcp", description="Run the MCP server"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("run", help="Start server in STDIO mode")
    serve_parser = subparsers.add_parser("serve", help="Start server in HTTP mode")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port number")
    serve_parser.add_argument(
        "--transport",
        choices=["http", "sse"],
        default="http",
        help="Transport (default: http)",
    )
    subparsers.add_parser("info", help="Show server information")

    if not argv:
        parser.print_help()
        return 1
    args = parser.parse_args(argv)

    from src.mcp import ServerConfig, TransportType, run_server

    if args.command == "run":
        logger.info("Starting MCP server in STDIO mode...")
        run_server(transport=TransportType.STDIO)
        return 0

    if args.command == "serve":
        config = ServerConfig.from_env(transport=TransportType(args.transport))
        host = args.host or config.host
        port = args.port or config.port
        logger.info(f"Starting MCP server in {config.transport.value} mode...")
        run_server(transport=config.transport, host=host, port=port)
        return 0

    from fastmcp import Client

    from src.mcp import get_server_health, mcp

    async def list_tools() -> list[str]:
        async with Client(mcp) as client:
            return [tool.name for tool in await client.list_tools()]

    health = get_server_health()
    tools = asyncio.run(list_tools())
    print(f"{mcp.name} v{health['version']}")
    print("=" * 40)
    print(f"Status: {health['status']}")
    print("\nCapabilities:")
    for cap, enabled in health["capabilities"].items():
        print(f"  {cap}: {'enabled' if enabled else 'disabled'}")
    print("\nTools:")
    for name in sorted(tools):
        print(f"  - {name}")
    for action in health.get("action_required", []):
        print(f"\nAction required: {action}")
    return 0


# =============================================================================
# Argument Parsing
# =============================================================================


def _add_tier(parser: argparse.ArgumentParser, default: str | None = "beginner"):
    parser.add_argument(
        "--tier",
        "-t",
        choices=["beginner", "intermediate", "advanced"],
        default=default,
        help=f"Audience tier (default: {default})",
    )


def _add_tags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tags",
        nargs="*",
        default=None,
        help="Content tags (e.g. nlp architecture)",
    )


def _add_output(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output file path (prints to stdout if not specified)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the pipeline commands."""
    parser = argparse.ArgumentParser(
        prog="python .",
        description="Explainer posters for research papers",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    compile_parser = subparsers.add_parser(
        "compile", help="Compile an abstract into schema-valid input"
    )
    compile_parser.add_argument("source", help="Text file with the abstract, or -")
    _add_tier(compile_parser)
    _add_tags(compile_parser)
    compile_parser.add_argument("--source-id", default=None, help="Source id")
    compile_parser.add_argument("--title", default=None, help="Paper title")
    compile_parser.add_argument("--model", "-m", default=None, help="LLM model name")
    compile_parser.add_argument("--api-key", "-k", default=None, help="API key")
    compile_parser.add_argument(
        "--attempts", type=int, default=None, help="Model calls per pass"
    )
    compile_parser.add_argument(
        "--two-pass", action="store_true", help="Extract semantics first"
    )
    compile_parser.add_argument(
        "--fallback", action="store_true", help="Derive input without an LLM"
    )
    _add_output(compile_parser)
    compile_parser.set_defaults(func=cmd_compile)

    layout_parser = subparsers.add_parser(
        "layout", help="Show the layout for a concept count"
    )
    layout_parser.add_argument("count", type=int, help="Number of concepts (1-10)")
    _add_tier(layout_parser)
    _add_tags(layout_parser)
    layout_parser.add_argument(
        "--alternatives", "-a", action="store_true", help="Show alternatives"
    )
    layout_parser.add_argument("--json", action="store_true", help="Print JSON")
    layout_parser.set_defaults(func=cmd_layout, tags=[])

    prompt_parser = subparsers.add_parser(
        "prompt", help="Build the structured prompt for a compiled input"
    )
    prompt_parser.add_argument("source", help="Compiled input JSON file, or -")
    _add_output(prompt_parser)
    prompt_parser.set_defaults(func=cmd_prompt)

    generate_parser = subparsers.add_parser(
        "generate", help="Generate a poster from a compiled input"
    )
    generate_parser.add_argument("source", help="Compiled input JSON file, or -")
    _add_tier(generate_parser, default=None)
    generate_parser.add_argument("--seed", type=int, default=None, help="Seed")
    generate_parser.add_argument("--api-key", default=None, help="FIBO API token")
    generate_parser.add_argument(
        "--output-dir", type=Path, default=None, help="Where to save the image"
    )
    generate_parser.set_defaults(func=cmd_generate)

    run_parser = subparsers.add_parser(
        "run", help="Full pipeline from an arXiv link or topic"
    )
    run_parser.add_argument("query", help="arXiv link, id or topic")
    _add_tier(run_parser)
    run_parser.add_argument(
        "--fallback", action="store_true", help="Summarize without an LLM"
    )
    run_parser.set_defaults(func=cmd_run)

    models_parser = subparsers.add_parser("models", help="List available LLM models")
    models_parser.set_defaults(func=cmd_models)

    return parser


PIPELINE_COMMANDS = ("compile", "layout", "prompt", "generate", "run", "models")


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\n=== Pipeline ===")
    print("  compile    Compile an abstract into schema-valid input")
    print("  layout     Show the layout for a concept count and tier")
    print("  prompt     Build the structured prompt for a compiled input")
    print("  generate   Generate a poster from a compiled input")
    print("  run        Full pipeline from an arXiv link or topic")
    print("  models     List available LLM models")
    print("\n=== MCP Server ===")
    print("  mcp        Run MCP server (STDIO or HTTP mode)")
    print("\n=== Development ===")
    print("  test       Run the test suite")
    print("\nExamples:")
    print("  python . run https://arxiv.org/abs/1706.03762 --tier beginner")
    print("  python . compile abstract.txt --source-id 1706.03762 -o input.json")
    print("  python . layout 5 --tier intermediate --alternatives")
    print("  python . generate input.json --seed 42")
    print("  python . mcp serve --port 18080")
    print("  python . test --unit")


def main() -> int:
    """Main entry point for the CLI."""
    if len(sys.argv) < 2:
        show_help()
        return 1

    command = sys.argv[1]
    rest_args = sys.argv[2:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    setup_logging(get_environment(EnvVar.LOG_LEVEL))

    if command == "mcp":
        return handle_mcp_command(rest_args)
    if command == "test":
        return cmd_test(rest_args)

    if command not in PIPELINE_COMMANDS:
        logger.error(f"Unknown command: {command}")
        show_help()
        return 1

    args = build_parser().parse_args(sys.argv[1:])
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

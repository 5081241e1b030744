from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Optional

from workshop.config import load_config
from workshop.llm.router.llm_router import LLMRouter
from workshop.orchestrator.orchestrator import Orchestrator, OrchestratorConfig
from workshop.preview.resolver import PreviewResolver
from workshop.project_state.file_tree import render_tree
from workshop.project_state.state_store import BuildStage, WorkshopStateStore
from workshop.utils.file_bundle import write_file_bundle
from workshop.utils.logger import get_logger


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Digital Workshop: describe a project, review its blueprint, generate and refine the code."
    )
    parser.add_argument("--goal", type=str, help="Project goal, e.g. 'A todo list web app in one index.html'.")
    parser.add_argument(
        "--project-dir",
        type=str,
        default=None,
        help="Directory holding the persisted workshop state (default: state_dir from config).",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to workshop.yaml.")
    parser.add_argument("--resume", action="store_true", help="Continue from the persisted state instead of starting over.")
    parser.add_argument("--review-only", action="store_true", help="Stop after the blueprint has been generated.")
    parser.add_argument("--blueprint-file", type=str, help="Replace the blueprint under review with this JSON file before approving.")
    parser.add_argument("--chat", type=str, help="Send one message to the AI pair programmer.")
    parser.add_argument("--apply-plan", action="store_true", help="Apply the most recent pending action plan.")
    parser.add_argument(
        "--apply-code",
        action="store_true",
        help="Copy the first code block of the latest AI reply into the selected file.",
    )
    parser.add_argument("--run", type=str, help="Select this file and run it (preview refresh or simulated execution).")
    parser.add_argument("--export", type=str, help="Write the project files and a self-contained preview.html here.")
    return parser.parse_args(argv)


def export_project(orch: Orchestrator, out_dir: Path) -> None:
    files = {f.file_name: f.content for f in orch.workshop.files}
    write_file_bundle(files, out_dir)

    resolver = PreviewResolver(inline=True)
    try:
        doc = resolver.render(orch.workshop.files)
        if doc.is_live:
            (out_dir / "preview.html").write_text(doc.html or "", encoding="utf-8")
    finally:
        resolver.close()


async def run_cli(args: argparse.Namespace) -> int:
    cfg = load_config(Path(args.config) if args.config else None)
    os.environ.setdefault("WORKSHOP_LOG_LEVEL", cfg.log_level)
    logger = get_logger("main")

    state_dir = Path(args.project_dir).resolve() if args.project_dir else cfg.state_dir.resolve()
    logger.info("Using state directory: %s", state_dir)

    orch = Orchestrator(
        LLMRouter.from_config(cfg),
        store=WorkshopStateStore(state_dir),
        cfg=OrchestratorConfig(sampling=cfg.file_sampling),
    )
    try:
        if args.goal and not args.resume:
            orch.set_goal(args.goal)
            if not await orch.generate_blueprint():
                logger.error("Blueprint generation failed: %s", orch.error)
                return 1
            print(orch.workshop.state.blueprint_text)
            if args.review_only:
                return 0

        if orch.workshop.stage is BuildStage.BLUEPRINT_REVIEW:
            if args.blueprint_file:
                orch.edit_blueprint_text(Path(args.blueprint_file).read_text(encoding="utf-8"))
            if not orch.approve_blueprint():
                logger.error("%s", orch.error)
                return 1
            results = await orch.generate_all_files()
            failed = [name for name, ok in results.items() if not ok]
            if failed:
                logger.warning("Files that failed to generate: %s", ", ".join(failed))

        if orch.workshop.stage is not BuildStage.BUILD:
            logger.error("Nothing to build yet. Pass --goal to start a project.")
            return 1

        if args.chat:
            reply = await orch.send_chat_message(args.chat)
            if reply is not None:
                print(reply.text)
                if reply.plan is not None:
                    print("\nProposed action plan:")
                    print(json.dumps(reply.plan.to_json_dict(), indent=2))

        if args.apply_plan:
            idx = orch.latest_pending_plan_index()
            if idx is None:
                logger.warning("No pending action plan to apply.")
            else:
                for outcome in orch.apply_plan(idx):
                    print(("applied  " if outcome.applied else "skipped  ") + outcome.message)

        if args.apply_code:
            if not orch.chat_messages or not orch.apply_code_block(-1):
                logger.warning("No code block to apply.")

        if args.run:
            if orch.select_file(args.run):
                await orch.run_selected_file()
                if orch.workshop.state.terminal_output:
                    print(orch.workshop.state.terminal_output)

        print(render_tree(orch.workshop.file_tree()))

        if args.export:
            out_dir = Path(args.export).resolve()
            export_project(orch, out_dir)
            logger.info("Exported project to %s", out_dir)
        return 0
    finally:
        orch.close()


def main() -> None:
    raise SystemExit(asyncio.run(run_cli(parse_args())))


if __name__ == "__main__":
    main()

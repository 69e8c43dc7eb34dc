import argparse
import asyncio
import logging
import sys

from screenpilot.agent import create_agent
from screenpilot.config import AgentSettings
from screenpilot.device import AdbDevice, ConsoleUserChannel
from screenpilot.errors import ConfigurationError
from screenpilot.llm import LLMOrchestrator
from screenpilot.memory.extractor import LLMMemoryExtractor


def build_settings(args: argparse.Namespace) -> AgentSettings:
    return AgentSettings.from_env(
        max_steps=args.max_steps,
        model_name=args.model,
        base_url=args.base_url,
        workspace_dir=args.workspace,
        record_dir=args.record_dir,
        verbose=not args.quiet,
    )


async def run(args: argparse.Namespace) -> int:
    settings = build_settings(args)
    if not settings.has_proxy and not settings.api_keys:
        raise ConfigurationError("Set SCREENPILOT_API_KEYS or SCREENPILOT_PROXY_URL/SCREENPILOT_PROXY_KEY.")

    orchestrator = LLMOrchestrator(settings)
    extractor = None
    if args.extract_memories:
        extractor = LLMMemoryExtractor(orchestrator.select_provider(), settings.memory_dedup_threshold)

    device = AdbDevice(serial=args.serial)
    agent = create_agent(settings, eyes=device, finger=device, apps=device, user=ConsoleUserChannel(),
                         orchestrator=orchestrator, memory_extractor=extractor)
    result = await agent.run(args.task)
    await agent.wait_for_background()

    status = "✅ Success" if result.success else "❌ Not completed"
    print(f"{status} after {result.steps} steps ({result.metadata.get('stop_reason')})")
    if result.final_text:
        print(result.final_text)
    for name in result.attachments:
        print(f"📎 {name}")
    if extractor and extractor.memories:
        print("🧠 Remembered:")
        for fact in extractor.memories:
            print(f"  - {fact}")
    return 0 if result.success else 1


def main():
    parser = argparse.ArgumentParser(description="ScreenPilot: drive an Android device with an LLM agent")
    parser.add_argument("task", type=str, help="Natural-language task to perform")
    parser.add_argument("--serial", type=str, default=None, help="adb device serial (default: the only device)")
    parser.add_argument("--max-steps", type=int, default=None, help="Maximum number of agent steps")
    parser.add_argument("--model", type=str, default=None, help="Model name")
    parser.add_argument("--base-url", type=str, default=None, help="OpenAI-compatible endpoint for direct calls")
    parser.add_argument("--workspace", type=str, default=None, help="Directory for the agent's files")
    parser.add_argument("--record-dir", type=str, default=None, help="Write a JSONL record of every step here")
    parser.add_argument("--extract-memories", action="store_true",
                        help="Ask the model for durable user facts after the run")
    parser.add_argument("--quiet", action="store_true", help="Less verbose step logging")
    args = parser.parse_args()

    # step progress has its own handler on "agent.steps"
    logging.basicConfig(level=logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        sys.exit(asyncio.run(run(args)))
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        print("Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()

"""Run the default setup plan against a scripted collaborator."""

import asyncio

from setupflow import SetupWizard, build_default_plan, get_store
from setupflow.collaborators import InMemoryCollaborator
from setupflow.config import WizardSettings
from setupflow.contracts import CallResult
from setupflow.persistence import SnapshotManager


async def main():
    print("🚀 Dry run of the default setup plan")

    collaborator = InMemoryCollaborator.dry_run("site-123", "example.com")
    # Make one analysis task fail to show how parallel failures are reported
    collaborator.respond("seo-backlinks", CallResult(ok=False, error="Provider rate limited"))

    settings = WizardSettings(min_step_duration=0.05, inter_step_delay=0, poll_interval=0.1)
    wizard = SetupWizard(
        build_default_plan(),
        collaborator,
        SnapshotManager(get_store()),
        site_id="site-123",
        tenant_id="acme",
        settings=settings,
        on_complete=lambda outcome: print(f"✅ Setup complete: {outcome.stats}"),
    )
    printed = set()

    def show_logs(state):
        for entry in state.logs:
            if entry.id not in printed:
                printed.add(entry.id)
                print(f"[{state.global_progress:3d}%] {entry.message}")

    wizard.state.subscribe(show_logs)

    if await wizard.mount():
        wizard.resume()
    outcome = await wizard.start()
    await wizard.close()
    print(f"Status: {outcome.status.value}, warnings: {outcome.warnings}")


if __name__ == "__main__":
    asyncio.run(main())

"""
Deployment pipeline: tasks with declared inputs, run in dependency order.

A task produces at most one contract address, keyed by the task name.
Tasks name the tasks whose addresses they need (``requires``) or can use
when present (``optional``). The pipeline orders tasks topologically,
checks configuration before touching the chain and records every address
in the Config Store as soon as its task finishes. A failing task aborts
the run; addresses already recorded stay.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .chain import ChainClient
from .config import NetworkDeploymentConfig
from .errors import ConfigError, MissingDependencyError
from .networks import NetworkSettings
from .store import ConfigStore


@dataclass
class DeploymentContext:
    network: NetworkSettings
    config: NetworkDeploymentConfig
    store: ConfigStore
    deployer: ChainClient
    factory_deployer: ChainClient
    artifacts: object
    addresses: Dict[str, str] = field(default_factory=dict)
    verify: bool = True
    redeploy: bool = False

    def __post_init__(self):
        # Addresses recorded by earlier runs satisfy requirements
        for name, address in self.config.addresses().items():
            self.addresses.setdefault(name, address)


@dataclass(frozen=True)
class Task:
    name: str
    run: Callable[[DeploymentContext], Optional[str]]
    requires: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ("all",)
    networks: Optional[FrozenSet[str]] = None
    sections: Tuple[str, ...] = ()

    def enabled_on(self, network: str) -> bool:
        return self.networks is None or network in self.networks


class Pipeline:

    def __init__(self, tasks: Iterable[Task]):
        self.tasks: Dict[str, Task] = {}
        for task in tasks:
            if task.name in self.tasks:
                raise ValueError(f"Duplicate task: {task.name}")
            self.tasks[task.name] = task

        for task in self.tasks.values():
            for dep in task.requires + task.optional:
                if dep not in self.tasks:
                    raise ValueError(f"Task {task.name} depends on unknown task {dep}")

        self.order = self._topological_order()

    def _topological_order(self) -> List[Task]:
        """Kahn's algorithm; ties keep declaration order."""
        pending = {name: set(task.requires + task.optional) for name, task in self.tasks.items()}
        order = []
        while pending:
            ready = [name for name in self.tasks if name in pending and not pending[name]]
            if not ready:
                raise ValueError(f"Dependency cycle between: {', '.join(sorted(pending))}")
            name = ready[0]
            order.append(self.tasks[name])
            del pending[name]
            for deps in pending.values():
                deps.discard(name)
        return order

    @staticmethod
    def _implicit_tags(task: Task, network: Optional[str]) -> set:
        tags = set(task.tags) | {task.name}
        if network and task.enabled_on(network):
            tags.add(network)
        return tags

    def select(self, tags: Iterable[str] = ("all",), network: Optional[str] = None) -> List[Task]:
        """
        Tasks carrying any of ``tags``, plus everything they require.

        A task also answers to its own name and, when ``network`` is given,
        to that network's name if it is enabled there.
        """
        tags = set(tags)
        selected = set()
        stack = [task.name for task in self.order if tags & self._implicit_tags(task, network)]
        while stack:
            name = stack.pop()
            if name in selected:
                continue
            selected.add(name)
            stack.extend(self.tasks[name].requires)
        if not selected:
            raise ConfigError(f"No deployment task matches tags: {', '.join(sorted(tags))}")
        return [task for task in self.order if task.name in selected]

    def preflight(self, context: DeploymentContext, tasks: List[Task]):
        """Fail on missing configuration before any chain interaction."""
        for task in tasks:
            if not task.enabled_on(context.network.name):
                continue
            for section in task.sections:
                context.config.require(section)

    def run(self, context: DeploymentContext, tags: Iterable[str] = ("all",)) -> Dict[str, str]:
        tasks = self.select(tags, context.network.name)
        self.preflight(context, tasks)

        network = context.network.name
        for task in tasks:
            if not task.enabled_on(network):
                print(f"[INFO] {task.name}: not deployed on {network}, skipping")
                continue

            missing = [dep for dep in task.requires if dep not in context.addresses]
            if missing:
                raise MissingDependencyError(
                    f"{task.name} needs {', '.join(missing)}, which {network} has no address for"
                )

            print(f"\n[*] {task.name} ({network})")
            address = task.run(context)
            if address:
                context.addresses[task.name] = address
                previous = context.store.record_deployment(network, task.name, address)
                if previous and previous != address:
                    print(f"[!] {task.name} address changed: {previous} -> {address}")
                print(f"[+] {task.name} ({network}) at {address}")

        return dict(context.addresses)

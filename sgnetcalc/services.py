"""Smart-grid services (traffic classes)."""
from dataclasses import dataclass, field

from .priorities import FlowPriority


@dataclass(eq=False)
class SGService:
    """One smart-grid service and the flows resolved for it.

    Attributes:
      name        — service name
      server      — label of the server the service runs on
      bucket_size — token-bucket size [B]
      bitrate     — arrival rate [B/s]
      deadline    — delay deadline [ms]
      multipath   — candidate routes, each an ordered list of node names
      priority    — flow priority of every route
      flows       — engine flow handles, one per route once resolved
    """

    name: str
    server: str
    bucket_size: int
    bitrate: int
    deadline: float
    multipath: list[list[str]]
    priority: FlowPriority = FlowPriority.HIGH
    flows: list = field(default_factory=list)

    def add_flow(self, flow) -> None:
        self.flows.append(flow)

    def reset_flows(self) -> None:
        self.flows.clear()

    def single_path_variants(self) -> list["SGService"]:
        """One copy of this service per route, each with a single path."""
        return [SGService(self.name, self.server, self.bucket_size, self.bitrate,
                          self.deadline, [list(path)], self.priority)
                for path in self.multipath]

    def __repr__(self):
        return (f"SGService({self.name!r}, prio={self.priority}, "
                f"r={self.bitrate}, b={self.bucket_size}, "
                f"deadline={self.deadline} ms, paths={len(self.multipath)})")

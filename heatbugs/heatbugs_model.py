"""
Heatbugs (NetLogo Heatbugs -> Python/NumPy)

Bugs live on a toroidal grid that carries a continuous heat field. Every bug
has an ideal temperature and an output heat. Each tick:
- the world heat diffuses to the 8 neighbours and evaporates (double buffer)
- bugs, in a freshly shuffled order, compute their unhappiness, look for a
  better (hotter or cooler) free patch, move there and leave heat behind
- the mean unhappiness of the swarm is reported

Usage
-----
    from heatbugs.heatbugs_model import HeatbugsModel, Params

    model = HeatbugsModel(Params(iterations=200, seed=42))
    history = model.run()          # mean unhappiness, step 0 included

Mapping notes (NetLogo -> Python)
---------------------------------
- patches: (height, width) NumPy arrays, rows grow south to north
- neighbors: 8 toroidal neighbours via array rolls (diffusion) or modulo
  arithmetic (bug moves)
- random-float / random: a single seeded `RandomSource`
- "ask turtles": Fisher-Yates shuffled bug ids, sequential, no snapshot
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np


NUM_NEIGHBOURS = 8

# Neighbour identities and their (row, col) offsets. North is row + 1.
SW, S, SE, W, E, NW, N, NE = range(NUM_NEIGHBOURS)
NEIGHBOUR_OFFSETS = (
    (-1, -1),  # SW
    (-1, 0),   # S
    (-1, 1),   # SE
    (0, -1),   # W
    (0, 1),    # E
    (1, -1),   # NW
    (1, 0),    # N
    (1, 1),    # NE
)

# What a bug is looking for in the current step.
FIND_ANY_FREE = 0
FIND_MAX_TEMPERATURE = 1
FIND_MIN_TEMPERATURE = 2

# Occupancy slot with no bug. Any other value is the index of the bug there.
EMPTY = -1

Location = Tuple[int, int]
Sink = Callable[[float], None]


@dataclass
class Params:
    iterations: int = 1000  # 0 = non stop
    bugs: int = 100
    width: int = 100
    height: int = 100
    diffusion_rate: float = 0.90  # [0..1], share of heat given to neighbours
    evaporation_rate: float = 0.01  # [0..1], share of heat lost to the ether
    random_move_chance: float = 0.0  # [0..100]
    temperature_min_ideal: int = 10  # [0..200[
    temperature_max_ideal: int = 40
    heat_min_output: int = 5  # [0..100[
    heat_max_output: int = 25
    seed: int | None = None
    output_filename: str = "heatbugs.csv"

    @property
    def world_size(self) -> int:
        return self.width * self.height


class RandomSource:
    """Seeded generator; the only randomness the simulation is allowed to use."""

    def __init__(self, seed: int | None = None):
        self._rng = random.Random()
        if seed is not None:
            self.seed(seed)

    def seed(self, u: int) -> None:
        self._rng.seed(u)

    def uniform_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi). An empty range yields `lo`."""
        if hi <= lo:
            return lo
        return self._rng.randrange(lo, hi)

    def uniform_real(self, lo: float, hi: float) -> float:
        """Real in [lo, hi)."""
        return lo + (hi - lo) * self._rng.random()

    def shuffle(self, ids: List[int]) -> None:
        """In-place Fisher-Yates; j == idx is kept since it is also a valid draw."""
        n = len(ids)
        for idx in range(n):
            j = self.uniform_int(idx, n)
            if j != idx:
                ids[idx], ids[j] = ids[j], ids[idx]


@dataclass
class Bug:
    row: int
    col: int
    ideal_temperature: int
    output_heat: int
    unhappiness: float = 0.0

    @property
    def location(self) -> Location:
        return self.row, self.col


class World:
    """Toroidal heat field (two buffers) plus the occupancy map."""

    def __init__(self, height: int, width: int):
        self.height = height
        self.width = width
        self.heat = [
            np.zeros((height, width), dtype=np.float64),
            np.zeros((height, width), dtype=np.float64),
        ]
        self.main = 0
        self.occupancy = np.full((height, width), EMPTY, dtype=np.int64)

    @property
    def heat_map(self) -> np.ndarray:
        """Current heat field."""
        return self.heat[self.main]

    @property
    def heat_buffer(self) -> np.ndarray:
        """Buffer the next heat field is written to."""
        return self.heat[1 - self.main]

    def swap(self) -> None:
        self.main = 1 - self.main

    def wrap(self, row: int, col: int) -> Location:
        return row % self.height, col % self.width

    def neighbours(self, row: int, col: int) -> List[Location]:
        """The 8 toroidal neighbours, indexed by neighbour identity."""
        return [self.wrap(row + dr, col + dc) for dr, dc in NEIGHBOUR_OFFSETS]

    def has_bug(self, loc: Location) -> bool:
        return self.occupancy[loc] != EMPTY

    def occupied_count(self) -> int:
        return int(np.count_nonzero(self.occupancy != EMPTY))


# ---- Heat transport ----

def neighbours8_sum(arr: np.ndarray, out: np.ndarray) -> np.ndarray:
    """Sum of the 8 toroidal neighbours of every cell of arr, written into out."""
    out[...] = 0.0
    for dr, dc in NEIGHBOUR_OFFSETS:
        # rolled[r, c] == arr[r + dr, c + dc], wrapping on both axes
        out += np.roll(arr, shift=(-dr, -dc), axis=(0, 1))
    return out


def comp_world_heat(
    heat_map: np.ndarray,
    heat_buffer: np.ndarray,
    diffusion_rate: float,
    evaporation_rate: float,
) -> np.ndarray:
    """
    Diffusion followed by evaporation, in one pass.

    next = sum(neighbours) * d / 8 + current * (1 - d)
    next = next * (1 - e)

    `heat_map` is only read and `heat_buffer` is only written, so the two
    must be distinct arrays.
    """
    if heat_map is heat_buffer:
        raise ValueError("heat_map and heat_buffer must be different arrays")
    neighbours8_sum(heat_map, heat_buffer)
    heat_buffer *= diffusion_rate / NUM_NEIGHBOURS
    heat_buffer += heat_map * (1.0 - diffusion_rate)
    heat_buffer *= 1.0 - evaporation_rate
    return heat_buffer


# ---- Bug movement ----

class MovementKernel:
    """
    Moves every bug once per step.

    Owns the scratch id vectors used for shuffling: one sized to the swarm,
    one sized to the neighbourhood. Both are reset to the identity before
    every shuffle, so no order carries over between calls.
    """

    def __init__(self, num_bugs: int, rng: RandomSource):
        self.rng = rng
        self.bug_ids = list(range(num_bugs))
        self.neighbour_ids = list(range(NUM_NEIGHBOURS))

    def shuffled_bug_ids(self) -> List[int]:
        self.bug_ids[:] = range(len(self.bug_ids))
        self.rng.shuffle(self.bug_ids)
        return self.bug_ids

    def shuffled_neighbour_ids(self) -> List[int]:
        self.neighbour_ids[:] = range(NUM_NEIGHBOURS)
        self.rng.shuffle(self.neighbour_ids)
        return self.neighbour_ids

    def best_free_neighbour(self, todo: int, world: World, loc: Location) -> Location:
        """
        Target patch for a bug at `loc`.

        For FIND_MAX_TEMPERATURE / FIND_MIN_TEMPERATURE the current patch and
        its 8 neighbours compete, scanned in a random order. Comparison is
        strict, so the current patch keeps every tie and among equal
        neighbours the first one scanned wins. If the winner is taken by
        another bug, or for FIND_ANY_FREE, the first free neighbour in the
        same scan order is returned, else `loc`.
        """
        scan = self.shuffled_neighbour_ids()
        neighbours = world.neighbours(*loc)
        heat_map = world.heat_map

        if todo != FIND_ANY_FREE:
            best = loc
            best_heat = heat_map[loc]
            for i in scan:
                pos = neighbours[i]
                heat = heat_map[pos]
                if todo == FIND_MAX_TEMPERATURE:
                    better = heat > best_heat
                else:
                    better = heat < best_heat
                if better:
                    best, best_heat = pos, heat

            if best == loc or not world.has_bug(best):
                return best

        for i in scan:
            pos = neighbours[i]
            if not world.has_bug(pos):
                return pos

        return loc

    def bug_step(self, world: World, swarm: List[Bug], random_move_chance: float) -> None:
        """
        One sequential pass over the swarm. Heat deposits and moves made by
        earlier bugs are seen by later bugs of the same step.
        """
        heat_map = world.heat_map

        for bug_id in self.shuffled_bug_ids():
            bug = swarm[bug_id]
            loc = bug.location
            temperature = float(heat_map[loc])

            bug.unhappiness = abs(bug.ideal_temperature - temperature)

            if bug.unhappiness == 0.0:
                heat_map[loc] += bug.output_heat
                continue

            # random move chance takes precedence over hot/cold seeking
            if self.rng.uniform_real(0, 100) < random_move_chance:
                todo = FIND_ANY_FREE
            elif temperature < bug.ideal_temperature:
                todo = FIND_MAX_TEMPERATURE
            else:
                todo = FIND_MIN_TEMPERATURE

            target = self.best_free_neighbour(todo, world, loc)

            # target is either loc or a free patch
            heat_map[target] += bug.output_heat

            if target == loc:
                continue

            world.occupancy[loc] = EMPTY
            world.occupancy[target] = bug_id
            bug.row, bug.col = target


# ---- Model ----

class HeatbugsModel:
    def __init__(self, params: Params, sink: Optional[Sink] = None):
        self.p = params
        self.rng = RandomSource(params.seed)
        self.world = World(params.height, params.width)
        self.swarm: List[Bug] = []
        self.movement = MovementKernel(params.bugs, self.rng)
        self.history: List[float] = []
        self.sink: Sink = sink if sink is not None else self.history.append
        self.ticks = 0
        self.setup()

    def setup(self):
        """
        Place the swarm on a cold world and report the step-0 unhappiness.
        Calling it again restarts the run: the generator is reseeded from
        `p.seed` and the owned history is cleared.
        """
        if self.p.seed is not None:
            self.rng.seed(self.p.seed)
        self.history.clear()
        self.world.main = 0
        self.initiate()
        self.ticks = 0
        self.sink(self.mean_unhappiness())

    def initiate(self):
        """
        Rejection-sample a free patch for every bug, then draw its ideal
        temperature and output heat. The world is at zero, so the initial
        unhappiness equals the ideal temperature.
        """
        p = self.p
        for arr in self.world.heat:
            arr[...] = 0.0
        self.world.occupancy[...] = EMPTY
        self.swarm = []

        for bug_id in range(p.bugs):
            while True:
                locus = self.rng.uniform_int(0, p.world_size)
                loc = divmod(locus, p.width)
                if not self.world.has_bug(loc):
                    break

            self.world.occupancy[loc] = bug_id

            ideal_temperature = self.rng.uniform_int(
                p.temperature_min_ideal, p.temperature_max_ideal)
            output_heat = self.rng.uniform_int(p.heat_min_output, p.heat_max_output)

            self.swarm.append(Bug(
                row=loc[0],
                col=loc[1],
                ideal_temperature=ideal_temperature,
                output_heat=output_heat,
                unhappiness=float(ideal_temperature),
            ))

    @property
    def done(self) -> bool:
        return self.p.iterations != 0 and self.ticks >= self.p.iterations

    def go(self) -> float:
        """
        One tick: world heat, buffer swap, bug step, statistics.
        Returns the mean unhappiness that was sent to the sink.
        """
        comp_world_heat(
            self.world.heat_map,
            self.world.heat_buffer,
            self.p.diffusion_rate,
            self.p.evaporation_rate,
        )
        self.world.swap()

        self.movement.bug_step(self.world, self.swarm, self.p.random_move_chance)

        value = self.mean_unhappiness()
        self.sink(value)
        self.ticks += 1
        return value

    def run(self, steps: int | None = None) -> List[float]:
        """
        Run `steps` more ticks, or until the iteration limit when `steps` is
        None. With `iterations == 0` and no `steps` this never returns.

        Returns the model-owned history, which stays empty when the model
        was given its own sink.
        """
        if steps is not None:
            for _ in range(steps):
                self.go()
        else:
            while not self.done:
                self.go()
        return self.history

    # ---- Convenience ----

    @property
    def heat_map(self) -> np.ndarray:
        return self.world.heat_map

    @property
    def unhappiness(self) -> np.ndarray:
        return np.array([bug.unhappiness for bug in self.swarm], dtype=np.float64)

    def mean_unhappiness(self) -> float:
        return float(self.unhappiness.mean())

    def occupied_count(self) -> int:
        return self.world.occupied_count()

    def as_rgb(self):
        """Return an (H,W,3) array: heat in red, bugs in green."""
        H, W = self.p.height, self.p.width
        rgb = np.zeros((H, W, 3), dtype=np.float32)
        heat = self.heat_map
        top = float(heat.max())
        if top > 0:
            rgb[..., 0] = np.clip(heat / top, 0.0, 1.0)
        rgb[self.world.occupancy != EMPTY, 1] = 0.9
        return rgb

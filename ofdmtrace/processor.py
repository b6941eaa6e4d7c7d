import abc

import numpy as np


class ProcessingBlock(abc.ABC):
    """
    Abstract base class for channel processing blocks.

    All processing blocks must implement the `process` method, which takes a
    complex sample array and returns a new array. A block may keep state
    between calls (e.g. an oscillator phase), so one block processing a long
    signal in pieces gives the same result as one call on the whole signal.
    """

    @abc.abstractmethod
    def process(self, samples: np.ndarray) -> np.ndarray:
        """
        Process the input samples and return the result.

        Args:
            samples: The input complex samples.

        Returns:
            The processed samples.
        """
        pass

    def __call__(self, samples: np.ndarray) -> np.ndarray:
        """
        Allows the block to be called like a function.
        """
        return self.process(samples)

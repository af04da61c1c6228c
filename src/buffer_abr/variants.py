"""
Variant Catalog

This module provides the quality variants a player can switch between,
and the catalog that ranks them by bandwidth.
"""

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


class Variant:
    """A playable quality rendition of the stream.

    Variants are immutable once created.
    """

    __slots__ = ('_bandwidth', '_variant_id', '_width', '_height', '_codecs')

    def __init__(self,
                 bandwidth: int,
                 variant_id: Optional[Any] = None,
                 width: Optional[int] = None,
                 height: Optional[int] = None,
                 codecs: Optional[str] = None):
        """Initialize a variant.

        Args:
            bandwidth: Bandwidth in bits per second
            variant_id: Host-defined identifier
            width: Frame width in pixels
            height: Frame height in pixels
            codecs: Codec string

        Raises:
            ValueError: If the bandwidth is negative
        """
        if bandwidth < 0:
            raise ValueError(f"Variant bandwidth must be non-negative, got {bandwidth}")

        object.__setattr__(self, '_bandwidth', int(bandwidth))
        object.__setattr__(self, '_variant_id', variant_id)
        object.__setattr__(self, '_width', width)
        object.__setattr__(self, '_height', height)
        object.__setattr__(self, '_codecs', codecs)

    def __setattr__(self, name, value):
        raise AttributeError("Variant is immutable")

    @property
    def bandwidth(self) -> int:
        return self._bandwidth

    @property
    def variant_id(self) -> Optional[Any]:
        return self._variant_id

    @property
    def width(self) -> Optional[int]:
        return self._width

    @property
    def height(self) -> Optional[int]:
        return self._height

    @property
    def codecs(self) -> Optional[str]:
        return self._codecs

    def _key(self) -> Tuple:
        return (self._bandwidth, self._variant_id, self._width, self._height, self._codecs)

    def __eq__(self, other):
        if not isinstance(other, Variant):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        parts = [f"bandwidth={self._bandwidth}"]
        if self._variant_id is not None:
            parts.append(f"variant_id={self._variant_id!r}")
        if self._width is not None and self._height is not None:
            parts.append(f"resolution={self._width}x{self._height}")
        return f"Variant({', '.join(parts)})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the variant to a dictionary.

        Returns:
            Dictionary with the variant attributes
        """
        return {
            'bandwidth': self._bandwidth,
            'variant_id': self._variant_id,
            'width': self._width,
            'height': self._height,
            'codecs': self._codecs,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Variant':
        """Create a variant from a dictionary.

        Args:
            data: Dictionary with at least a 'bandwidth' key

        Returns:
            Variant instance
        """
        return cls(
            bandwidth=data['bandwidth'],
            variant_id=data.get('variant_id', data.get('id')),
            width=data.get('width'),
            height=data.get('height'),
            codecs=data.get('codecs'),
        )


class VariantCatalog:
    """The set of available variants, ranked by ascending bandwidth.

    The catalog is replaced wholesale by set_variants() and never
    mutated in place. Rank 0 is the lowest quality.
    """

    def __init__(self, variants: Optional[Iterable[Variant]] = None):
        self._variants: Tuple[Variant, ...] = ()
        if variants is not None:
            self.set_variants(variants)

    def set_variants(self, variants: Iterable[Variant]) -> None:
        """Replace the catalog.

        Args:
            variants: Zero or more variants, in any order
        """
        # sorted() is stable, equal bandwidths keep their host order
        self._variants = tuple(sorted(variants, key=lambda v: v.bandwidth))

    def clear(self) -> None:
        self._variants = ()

    def variant_at_rank(self, index: int) -> Variant:
        """Get the variant at a bandwidth rank.

        Args:
            index: Rank, 0 being the lowest bandwidth

        Returns:
            Variant at the given rank

        Raises:
            IndexError: If the index is outside the catalog
        """
        if index < 0 or index >= len(self._variants):
            raise IndexError(
                f"Variant rank {index} out of range for catalog of {len(self._variants)}"
            )
        return self._variants[index]

    def rank_of(self, variant: Variant) -> int:
        """Get the rank of a variant.

        Raises:
            ValueError: If the variant is not in the catalog
        """
        return self._variants.index(variant)

    @property
    def max_index(self) -> int:
        """Highest valid rank (-1 for an empty catalog)."""
        return len(self._variants) - 1

    def bandwidths(self) -> List[int]:
        return [v.bandwidth for v in self._variants]

    def is_empty(self) -> bool:
        return not self._variants

    def __len__(self) -> int:
        return len(self._variants)

    def __iter__(self) -> Iterator[Variant]:
        return iter(self._variants)

    def __repr__(self):
        return f"VariantCatalog(bandwidths={self.bandwidths()})"

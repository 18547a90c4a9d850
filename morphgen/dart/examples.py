"""Sample Dart sources for tests and demos.

This module provides a small product catalog (sealed base, explicit
subtypes, alternate constructors, JSON), a copy-with hierarchy across
generic subclasses, and a generic value type.
"""

from typing import Dict

# Sealed product base with two explicit subtypes and a patchable field type
PRODUCT_CATALOG = """import 'package:zikzak_morphy_annotation/zikzak_morphy_annotation.dart';

part 'catalog.morphy.dart';
part 'catalog.g.dart';

enum ProductStatus { draft, active, archived }

/// Base product type shared by every catalog entry.
@Morphy(generateJson: true, explicitSubTypes: [$PhysicalProduct, $DigitalProduct])
abstract class $$Product {
  String get id;
  String get name;
  double get basePrice;
  ProductStatus get status;
  List<String> get tags;
}

/// Outer size of a shipped parcel.
@Morphy(generateJson: true)
abstract class $Dimensions {
  double get length;
  double get width;
  double get height;

  factory $Dimensions.cube(double side) => $Dimensions._(length: side, width: side, height: side);
}

/// Product that ships in a box.
@Morphy(generateJson: true)
abstract class $PhysicalProduct implements $$Product {
  double get weight; // kilograms
  $Dimensions get dimensions;
  String get sku;

  /// Create a draft product with a generated SKU.
  factory $PhysicalProduct.create({
    required String name,
    required double price,
    required $Dimensions dimensions,
    String? sku,
  }) {
    final now = DateTime.now();
    final label = "}$ not code {";
    return $PhysicalProduct._(
      id: 'PROD-${now.millisecondsSinceEpoch}',
      name: name,
      basePrice: price,
      status: ProductStatus.draft,
      tags: ['physical'],
      weight: 0.0,
      dimensions: dimensions,
      sku: sku ?? 'PHYS-${now.millisecondsSinceEpoch}',
    );
  }
}

/// Product delivered as a download.
@Morphy(generateJson: true, hidePublicConstructor: true)
abstract class $DigitalProduct implements $$Product {
  String get downloadUrl;
  int get fileSizeBytes;

  factory $DigitalProduct.free(String name, String url) => $DigitalProduct._(
        id: 'FREE-$name',
        name: name,
        basePrice: 0.0,
        status: ProductStatus.active,
        tags: const ['free'],
        downloadUrl: url,
        fileSizeBytes: 0,
      );
}
"""

# Copy-with across a sealed base and generic subclasses
COPYWITH_SUBCLASSES = """// Copy-with from subclass to superclass and back

@Morphy()
abstract class $$A {
  String get a;
}

@Morphy()
abstract class $B<T1> implements $$A {
  String get a;

  T1 get b;
}

@Morphy()
abstract class $C<T1> implements $B<T1> {
  String get a;

  T1 get b;

  bool get c;
}
"""

# Generic value type with a bound
GENERIC_PAIR = """@Morphy(generateCompareTo: true)
abstract class $Pair<K extends Comparable, V> {
  K get key;
  V get value;
  List<V>? get history;
}
"""

EXAMPLE_SOURCES: Dict[str, str] = {
    "example/catalog.dart": PRODUCT_CATALOG,
    "example/copywith_subclasses.dart": COPYWITH_SUBCLASSES,
    "example/pair.dart": GENERIC_PAIR,
}

# Manifest overriding options of the catalog without touching the source
CATALOG_MANIFEST = """defaults:
  explicitToJson: true
declarations:
  $Dimensions:
    generateCompareTo: true
"""

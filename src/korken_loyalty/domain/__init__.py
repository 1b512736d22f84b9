"""Pure loyalty and coupon rules with no storage dependencies."""

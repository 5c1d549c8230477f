"""Request and response models specific to the HTTP surface."""

"""
Defect classifier network.

Small CNN: three conv/pool stages followed by two dropout-regularized
dense layers and a softmax over the defect classes.
"""

import torch
from torch import nn

from .config import DEFECT_CLASSES


class DefectClassifierNet(nn.Module):
    """
    Input: float tensor [batch, 3, 224, 224] in [0, 1].
    Output: class probabilities [batch, num_classes].
    """

    def __init__(self, num_classes: int = len(DEFECT_CLASSES), image_size: int = 224):
        super().__init__()
        self.features = nn.Sequential(
            nn.Conv2d(3, 32, kernel_size=3),
            nn.ReLU(inplace=True),
            nn.MaxPool2d(2),
            nn.Conv2d(32, 64, kernel_size=3),
            nn.ReLU(inplace=True),
            nn.MaxPool2d(2),
            nn.Conv2d(64, 128, kernel_size=3),
            nn.ReLU(inplace=True),
            nn.MaxPool2d(2),
        )

        # 224 -> 222 -> 111 -> 109 -> 54 -> 52 -> 26
        side = image_size
        for _ in range(3):
            side = (side - 2) // 2
        flat_features = 128 * side * side

        self.classifier = nn.Sequential(
            nn.Flatten(),
            nn.Linear(flat_features, 128),
            nn.ReLU(inplace=True),
            nn.Dropout(0.5),
            nn.Linear(128, 64),
            nn.ReLU(inplace=True),
            nn.Dropout(0.3),
            nn.Linear(64, num_classes),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.softmax(self.classifier(self.features(x)), dim=1)

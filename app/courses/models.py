from pydantic import BaseModel, validator
from typing import Optional
from enum import Enum

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class CourseSort(str, Enum):
    NEWEST = "newest"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    TITLE = "title"

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str
    subtitle: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    level: CourseLevel = CourseLevel.BEGINNER
    price: float = 0.0
    thumbnail: Optional[str] = None

    @validator('title')
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Course title is required')
        return v

    @validator('price')
    def validate_price(cls, v):
        if v < 0:
            raise ValueError('Price cannot be negative')
        return v

class CourseUpdate(BaseModel):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[CourseLevel] = None
    price: Optional[float] = None
    thumbnail: Optional[str] = None
    is_published: Optional[bool] = None

    @validator('title')
    def validate_title(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Course title cannot be empty')
        return v

    @validator('price')
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError('Price cannot be negative')
        return v

# ==================== LECTURE MODELS ====================

class LectureCreate(BaseModel):
    title: str
    description: Optional[str] = None
    video_url: str
    duration: int = 0  # seconds
    is_preview: bool = False

    @validator('title')
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Lecture title is required')
        return v

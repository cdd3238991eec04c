"""
Server runner
MOJI! 服务启动脚本
"""

import uvicorn
from moji.core.config import settings

if __name__ == "__main__":
    options = {
        "host": settings.HOST,
        "port": settings.PORT,
        "access_log": True,
        "log_level": settings.LOG_LEVEL.lower(),
    }
    # reload 模式和 workers 不能同时使用；多 worker 时实时消息经 Redis 分发
    if settings.DEBUG:
        options["reload"] = True
    else:
        options["workers"] = settings.WORKERS

    uvicorn.run("moji.main:app", **options)

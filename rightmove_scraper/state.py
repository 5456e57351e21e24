"""
一次爬取内共享的状态

每次运行各创建一个实例，通过构造参数传进爬虫 / Pipeline，不用全局变量。
"""

from threading import Lock


class SeenListings:
    """已入队的房源 URL 集合，检查和插入是一个原子操作"""

    def __init__(self):
        self._urls = set()
        self._lock = Lock()

    def claim(self, url):
        """第一次见到返回 True 并记下来，已经见过返回 False"""
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def __contains__(self, url):
        with self._lock:
            return url in self._urls

    def __len__(self):
        with self._lock:
            return len(self._urls)


class BatchBuffer:
    """攒批写库用的缓冲区"""

    def __init__(self, batch_size=15):
        if batch_size < 1:
            raise ValueError("batch_size 必须 >= 1")
        self.batch_size = batch_size
        self._records = []
        self._lock = Lock()

    def append(self, record):
        """追加一条记录，攒满一批时返回这一批并清空，否则返回 None"""
        with self._lock:
            self._records.append(record)
            if len(self._records) < self.batch_size:
                return None
            batch, self._records = self._records, []
            return batch

    def drain(self):
        """取出剩下的所有记录（关闭时用）"""
        with self._lock:
            batch, self._records = self._records, []
            return batch

    def __len__(self):
        with self._lock:
            return len(self._records)
